"""Metrics from ``information_schema.innodb_metrics``."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from typing import Any

from .core import (
    INFORMATION_SCHEMA,
    NAMESPACE,
    Desc,
    Metric,
    Scraper,
    ValueType,
    build_fq_name,
    query,
)

logger = logging.getLogger(__name__)

INFO_SCHEMA_INNODB_METRICS_QUERY = """
        SELECT
          name, subsystem, type, comment,
          count
          FROM information_schema.innodb_metrics
          WHERE status = 'enabled'
        """

BUFFER_PAGE_READ_TOTAL_DESC = Desc(
    build_fq_name(NAMESPACE, INFORMATION_SCHEMA, "innodb_metrics_buffer_page_read_total"),
    "Total number of buffer pages read total.",
    ("type",),
)
BUFFER_PAGE_WRITTEN_TOTAL_DESC = Desc(
    build_fq_name(NAMESPACE, INFORMATION_SCHEMA, "innodb_metrics_buffer_page_written_total"),
    "Total number of buffer pages written total.",
    ("type",),
)
BUFFER_POOL_PAGES_DESC = Desc(
    build_fq_name(NAMESPACE, INFORMATION_SCHEMA, "innodb_metrics_buffer_pool_pages"),
    "Total number of buffer pool pages by state.",
    ("state",),
)
BUFFER_POOL_PAGES_DIRTY_DESC = Desc(
    build_fq_name(NAMESPACE, INFORMATION_SCHEMA, "innodb_metrics_buffer_pool_dirty_pages"),
    "Total number of dirty pages in the buffer pool.",
)

_BUFFER_RE = re.compile(r"^buffer_(pool_pages)_(.*)\Z")
_BUFFER_PAGE_RE = re.compile(r"^buffer_page_(read|written)_(.*)\Z")

_BUFFER_PAGE_DESCS = {
    "read": BUFFER_PAGE_READ_TOTAL_DESC,
    "written": BUFFER_PAGE_WRITTEN_TOTAL_DESC,
}

_COUNTER_TYPES = frozenset({"counter", "status_counter"})


def _text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", "replace")
    return "" if value is None else str(value)


class ScrapeInnodbMetrics(Scraper):
    """Collects enabled counters and gauges from information_schema.innodb_metrics."""

    name = INFORMATION_SCHEMA + ".innodb_metrics"
    help = "Collect metrics from information_schema.innodb_metrics"
    version = 5.6

    def scrape(self, db: Any) -> Iterator[Metric]:
        _, rows = query(db, INFO_SCHEMA_INNODB_METRICS_QUERY)
        for raw_name, raw_subsystem, raw_type, raw_comment, raw_value in rows:
            name = _text(raw_name)
            subsystem = _text(raw_subsystem)
            metric_type = _text(raw_type)
            comment = _text(raw_comment)
            value = float(raw_value)

            if subsystem == "buffer_page_io":
                match = _BUFFER_PAGE_RE.match(name)
                if match is None:
                    logger.warning(
                        "innodb_metrics subsystem buffer_page_io returned an invalid name: %s",
                        name,
                    )
                    continue
                yield _BUFFER_PAGE_DESCS[match.group(1)].metric(
                    ValueType.COUNTER, value, match.group(2)
                )
                continue

            if subsystem == "buffer":
                # Unmatched buffer metrics fall through to the generic handling.
                match = _BUFFER_RE.match(name)
                if match is not None:
                    state = match.group(2)
                    if state == "total":
                        # The total is an aggregation of the other states.
                        continue
                    if state == "dirty":
                        yield BUFFER_POOL_PAGES_DIRTY_DESC.metric(ValueType.GAUGE, value)
                    else:
                        yield BUFFER_POOL_PAGES_DESC.metric(ValueType.GAUGE, value, state)
                    continue

            metric_name = f"innodb_metrics_{subsystem}_{name}"
            # Negative counters come from a server bug, so they are reported as gauges.
            if metric_type in _COUNTER_TYPES and value >= 0:
                desc = Desc(
                    build_fq_name(NAMESPACE, INFORMATION_SCHEMA, metric_name + "_total"),
                    comment,
                )
                yield desc.metric(ValueType.COUNTER, value)
            else:
                desc = Desc(build_fq_name(NAMESPACE, INFORMATION_SCHEMA, metric_name), comment)
                yield desc.metric(ValueType.GAUGE, value)