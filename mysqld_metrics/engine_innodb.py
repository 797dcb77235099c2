"""Metrics from ``SHOW ENGINE INNODB STATUS``."""

from __future__ import annotations

import re
from collections.abc import Iterator
from typing import Any

from .core import Metric, Scraper, ValueType, new_desc, query

SUBSYSTEM = "engine_innodb"
ENGINE_INNODB_STATUS_QUERY = "SHOW ENGINE INNODB STATUS"

_QUERIES_RE = re.compile(r"(\d+) queries inside InnoDB, (\d+) queries in queue", re.ASCII)
_VIEWS_RE = re.compile(r"(\d+) read views open inside InnoDB", re.ASCII)

QUERIES_INSIDE_DESC = new_desc(SUBSYSTEM, "queries_inside_innodb", "Queries inside InnoDB.")
QUERIES_IN_QUEUE_DESC = new_desc(SUBSYSTEM, "queries_in_queue", "Queries in queue.")
READ_VIEWS_DESC = new_desc(
    SUBSYSTEM, "read_views_open_inside_innodb", "Read views open inside InnoDB."
)


class ScrapeEngineInnodbStatus(Scraper):
    """Collects query and read view counts from the InnoDB monitor output."""

    name = "engine_innodb_status"
    help = "Collect from SHOW ENGINE INNODB STATUS"
    version = 5.1

    def scrape(self, db: Any) -> Iterator[Metric]:
        _, rows = query(db, ENGINE_INNODB_STATUS_QUERY)
        status = ""
        # Only the first row carries the monitor output.
        if rows:
            _type, _name, status = rows[0]
        if isinstance(status, (bytes, bytearray)):
            status = bytes(status).decode("utf-8", "replace")
        status = status or ""

        for line in status.split("\n"):
            if match := _QUERIES_RE.search(line):
                yield QUERIES_INSIDE_DESC.metric(ValueType.GAUGE, float(match.group(1)))
                yield QUERIES_IN_QUEUE_DESC.metric(ValueType.GAUGE, float(match.group(2)))
            elif match := _VIEWS_RE.search(line):
                yield READ_VIEWS_DESC.metric(ValueType.GAUGE, float(match.group(1)))