"""Metrics from ``SHOW ENGINE TOKUDB STATUS``."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from .core import Metric, Scraper, ValueType, new_desc, parse_status, query

SUBSYSTEM = "engine_tokudb"
ENGINE_TOKUDB_STATUS_QUERY = "SHOW ENGINE TOKUDB STATUS"

_REPLACEMENTS = {
    ">": "",
    ",": "",
    ":": "",
    "(": "",
    ")": "",
    " ": "_",
    "-": "_",
    "+": "and",
    "/": "and",
}


def sanitize_tokudb_metric(metric_name: str) -> str:
    """Turn a TokuDB status name into a metric name fragment."""
    for old, new in _REPLACEMENTS.items():
        metric_name = metric_name.replace(old, new)
    return metric_name


class ScrapeEngineTokudbStatus(Scraper):
    """Collects every numeric TokuDB status value as an untyped metric."""

    name = "engine_tokudb_status"
    help = "Collect from SHOW ENGINE TOKUDB STATUS"
    version = 5.6

    def scrape(self, db: Any) -> Iterator[Metric]:
        _, rows = query(db, ENGINE_TOKUDB_STATUS_QUERY)
        for _type, key, value in rows:
            if isinstance(key, (bytes, bytearray)):
                key = bytes(key).decode("utf-8", "replace")
            key = str(key).lower()
            number = parse_status(value)
            if number is not None:
                yield new_desc(
                    SUBSYSTEM,
                    sanitize_tokudb_metric(key),
                    "Generic metric from SHOW ENGINE TOKUDB STATUS.",
                ).metric(ValueType.UNTYPED, number)