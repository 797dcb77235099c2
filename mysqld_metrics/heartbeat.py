"""Metrics from a heartbeat table such as the one pt-heartbeat writes."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from .core import NAMESPACE, Desc, Metric, Scraper, ValueType, build_fq_name, query

SUBSYSTEM = "heartbeat"
HEARTBEAT_QUERY = (
    "SELECT UNIX_TIMESTAMP(ts), UNIX_TIMESTAMP(NOW(6)), server_id from `{database}`.`{table}`"
)

HEARTBEAT_STORED_DESC = Desc(
    build_fq_name(NAMESPACE, SUBSYSTEM, "stored_timestamp_seconds"),
    "Timestamp stored in the heartbeat table.",
    ("server_id",),
)
HEARTBEAT_NOW_DESC = Desc(
    build_fq_name(NAMESPACE, SUBSYSTEM, "now_timestamp_seconds"),
    "Timestamp of the current server.",
    ("server_id",),
)


@dataclass
class ScrapeHeartbeat(Scraper):
    """Reads stored and current timestamps per server from the heartbeat table."""

    database: str = "heartbeat"
    table: str = "heartbeat"

    name = "heartbeat"
    help = "Collect from heartbeat"
    version = 5.1

    def scrape(self, db: Any) -> Iterator[Metric]:
        sql = HEARTBEAT_QUERY.format(database=self.database, table=self.table)
        _, rows = query(db, sql)
        for ts, now, server_id in rows:
            stored = float(ts)
            current = float(now)
            server = str(int(server_id))
            yield HEARTBEAT_NOW_DESC.metric(ValueType.GAUGE, current, server)
            yield HEARTBEAT_STORED_DESC.metric(ValueType.GAUGE, stored, server)