"""Metrics from ``SHOW GLOBAL STATUS``."""

from __future__ import annotations

import re
from collections.abc import Iterator
from typing import Any

from .core import (
    NAMESPACE,
    Desc,
    Metric,
    Scraper,
    ValueType,
    build_fq_name,
    new_desc,
    parse_status,
    query,
)
from .global_variables import valid_prometheus_name

SUBSYSTEM = "global_status"
GLOBAL_STATUS_QUERY = "SHOW GLOBAL STATUS"
GENERIC_HELP = "Generic metric from SHOW GLOBAL STATUS."

REPL_LATENCY_AGGREGATORS = (
    "Minimum",
    "Average",
    "Maximum",
    "Standard Deviation",
    "Sample Size",
)

_GLOBAL_STATUS_RE = re.compile(
    r"^(com|handler|connection_errors|innodb_buffer_pool_pages|innodb_rows|performance_schema)_(.*)\Z"
)

_BUFFER_POOL_STATES = frozenset({"data", "dirty", "free", "misc", "old", "total"})

_TEXT_ITEMS = (
    "wsrep_local_state_uuid",
    "wsrep_cluster_state_uuid",
    "wsrep_provider_version",
    "wsrep_evs_repl_latency",
)

GLOBAL_COMMANDS_DESC = Desc(
    build_fq_name(NAMESPACE, SUBSYSTEM, "commands_total"),
    "Total number of executed MySQL commands.",
    ("command",),
)
GLOBAL_HANDLER_DESC = Desc(
    build_fq_name(NAMESPACE, SUBSYSTEM, "handlers_total"),
    "Total number of executed MySQL handlers.",
    ("handler",),
)
GLOBAL_CONNECTION_ERRORS_DESC = Desc(
    build_fq_name(NAMESPACE, SUBSYSTEM, "connection_errors_total"),
    "Total number of MySQL connection errors.",
    ("error",),
)
GLOBAL_BUFFER_POOL_PAGES_DESC = Desc(
    build_fq_name(NAMESPACE, SUBSYSTEM, "buffer_pool_pages"),
    "Innodb buffer pool pages by state.",
    ("state",),
)
GLOBAL_BUFFER_POOL_PAGE_CHANGES_DESC = Desc(
    build_fq_name(NAMESPACE, SUBSYSTEM, "buffer_pool_page_changes_total"),
    "Innodb buffer pool page state changes.",
    ("operation",),
)
GLOBAL_INNODB_ROW_OPS_DESC = Desc(
    build_fq_name(NAMESPACE, SUBSYSTEM, "innodb_row_ops_total"),
    "Total number of MySQL InnoDB row operations.",
    ("operation",),
)
GLOBAL_PERFORMANCE_SCHEMA_LOST_DESC = Desc(
    build_fq_name(NAMESPACE, SUBSYSTEM, "performance_schema_lost_total"),
    "Total number of MySQL instrumentations that could not be loaded or created due to memory constraints.",
    ("instrumentation",),
)
GALERA_STATUS_INFO_DESC = Desc(
    build_fq_name(NAMESPACE, "galera", "status_info"),
    "PXC/Galera status information.",
    ("wsrep_local_state_uuid", "wsrep_cluster_state_uuid", "wsrep_provider_version"),
)
GALERA_REPL_LATENCY_DESC = Desc(
    build_fq_name(NAMESPACE, SUBSYSTEM, "wsrep_evs_repl_latency"),
    "PXC/Galera replication latency on group communication.",
    ("aggregator",),
)

_COUNTER_GROUPS = {
    "com": GLOBAL_COMMANDS_DESC,
    "handler": GLOBAL_HANDLER_DESC,
    "connection_errors": GLOBAL_CONNECTION_ERRORS_DESC,
    "innodb_rows": GLOBAL_INNODB_ROW_OPS_DESC,
    "performance_schema": GLOBAL_PERFORMANCE_SCHEMA_LOST_DESC,
}


def _text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", "replace")
    return "" if value is None else str(value)


def _parse_float(text: str) -> float | None:
    if not text or text != text.strip() or "_" in text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _status_metric(key: str, number: float) -> Metric:
    match = _GLOBAL_STATUS_RE.match(key)
    if match is None:
        return new_desc(SUBSYSTEM, key, GENERIC_HELP).metric(ValueType.UNTYPED, number)
    group, rest = match.group(1), match.group(2)
    if group == "innodb_buffer_pool_pages":
        if rest in _BUFFER_POOL_STATES:
            return GLOBAL_BUFFER_POOL_PAGES_DESC.metric(ValueType.GAUGE, number, rest)
        return GLOBAL_BUFFER_POOL_PAGE_CHANGES_DESC.metric(ValueType.COUNTER, number, rest)
    return _COUNTER_GROUPS[group].metric(ValueType.COUNTER, number, rest)


class ScrapeGlobalStatus(Scraper):
    """Collects every numeric global status value, grouped where known."""

    name = SUBSYSTEM
    help = "Collect from SHOW GLOBAL STATUS"
    version = 5.1

    def scrape(self, db: Any) -> Iterator[Metric]:
        _, rows = query(db, GLOBAL_STATUS_QUERY)
        text_items = dict.fromkeys(_TEXT_ITEMS, "")

        for raw_key, value in rows:
            key = _text(raw_key)
            number = parse_status(value)
            # Values that are not numbers are skipped unless they are known text items.
            if number is not None:
                yield _status_metric(valid_prometheus_name(key), number)
            elif key in text_items:
                text_items[key] = _text(value)

        if text_items["wsrep_local_state_uuid"]:
            yield GALERA_STATUS_INFO_DESC.metric(
                ValueType.GAUGE,
                1,
                text_items["wsrep_local_state_uuid"],
                text_items["wsrep_cluster_state_uuid"],
                text_items["wsrep_provider_version"],
            )

        latency = text_items["wsrep_evs_repl_latency"]
        if latency:
            parts = latency.split("/")
            if len(parts) == len(REPL_LATENCY_AGGREGATORS):
                for aggregator, part in zip(REPL_LATENCY_AGGREGATORS, parts):
                    number = _parse_float(part)
                    if number is not None:
                        yield GALERA_REPL_LATENCY_DESC.metric(
                            ValueType.GAUGE, number, aggregator
                        )