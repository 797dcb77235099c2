"""Metrics from ``information_schema.client_statistics``."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any, NamedTuple

from .core import (
    INFORMATION_SCHEMA,
    NAMESPACE,
    USERSTAT_CHECK_QUERY,
    Desc,
    Metric,
    Scraper,
    ValueType,
    build_fq_name,
    query,
    query_row,
)

logger = logging.getLogger(__name__)

CLIENT_STAT_QUERY = "SELECT * FROM information_schema.client_statistics"

_LABELS = ("client",)


class _ColumnType(NamedTuple):
    value_type: ValueType
    desc: Desc


def _column(value_type: ValueType, name: str, help_text: str) -> _ColumnType:
    return _ColumnType(
        value_type,
        Desc(
            build_fq_name(NAMESPACE, INFORMATION_SCHEMA, f"client_statistics_{name}"),
            help_text,
            _LABELS,
        ),
    )


_C = ValueType.COUNTER

# Known client statistics columns; unknown ones are reported as untyped.
CLIENT_STATISTICS_TYPES: dict[str, _ColumnType] = {
    "TOTAL_CONNECTIONS": _column(
        _C, "total_connections", "The number of connections created for this client."
    ),
    "CONCURRENT_CONNECTIONS": _column(
        ValueType.GAUGE,
        "concurrent_connections",
        "The number of concurrent connections for this client.",
    ),
    "CONNECTED_TIME": _column(
        _C,
        "connected_time_seconds_total",
        "The cumulative number of seconds elapsed while there were connections from this client.",
    ),
    "BUSY_TIME": _column(
        _C,
        "busy_seconds_total",
        "The cumulative number of seconds there was activity on connections from this client.",
    ),
    "CPU_TIME": _column(
        _C,
        "cpu_time_seconds_total",
        "The cumulative CPU time elapsed, in seconds, while servicing this client's connections.",
    ),
    "BYTES_RECEIVED": _column(
        _C,
        "bytes_received_total",
        "The number of bytes received from this client’s connections.",
    ),
    "BYTES_SENT": _column(
        _C, "bytes_sent_total", "The number of bytes sent to this client’s connections."
    ),
    "BINLOG_BYTES_WRITTEN": _column(
        _C,
        "binlog_bytes_written_total",
        "The number of bytes written to the binary log from this client’s connections.",
    ),
    "ROWS_READ": _column(
        _C, "rows_read_total", "The number of rows read by this client’s connections."
    ),
    "ROWS_SENT": _column(
        _C, "rows_sent_total", "The number of rows sent by this client’s connections."
    ),
    "ROWS_DELETED": _column(
        _C, "rows_deleted_total", "The number of rows deleted by this client’s connections."
    ),
    "ROWS_INSERTED": _column(
        _C, "rows_inserted_total", "The number of rows inserted by this client’s connections."
    ),
    "ROWS_FETCHED": _column(
        _C, "rows_fetched_total", "The number of rows fetched by this client’s connections."
    ),
    "ROWS_UPDATED": _column(
        _C, "rows_updated_total", "The number of rows updated by this client’s connections."
    ),
    "TABLE_ROWS_READ": _column(
        _C,
        "table_rows_read_total",
        "The number of rows read from tables by this client’s connections. "
        "(It may be different from ROWS_FETCHED.)",
    ),
    "SELECT_COMMANDS": _column(
        _C,
        "select_commands_total",
        "The number of SELECT commands executed from this client’s connections.",
    ),
    "UPDATE_COMMANDS": _column(
        _C,
        "update_commands_total",
        "The number of UPDATE commands executed from this client’s connections.",
    ),
    "OTHER_COMMANDS": _column(
        _C,
        "other_commands_total",
        "The number of other commands executed from this client’s connections.",
    ),
    "COMMIT_TRANSACTIONS": _column(
        _C,
        "commit_transactions_total",
        "The number of COMMIT commands issued by this client’s connections.",
    ),
    "ROLLBACK_TRANSACTIONS": _column(
        _C,
        "rollback_transactions_total",
        "The number of ROLLBACK commands issued by this client’s connections.",
    ),
    "DENIED_CONNECTIONS": _column(
        _C, "denied_connections_total", "The number of connections denied to this client."
    ),
    "LOST_CONNECTIONS": _column(
        _C,
        "lost_connections_total",
        "The number of this client’s connections that were terminated uncleanly.",
    ),
    "ACCESS_DENIED": _column(
        _C,
        "access_denied_total",
        "The number of times this client’s connections issued commands that were denied.",
    ),
    "EMPTY_QUERIES": _column(
        _C,
        "empty_queries_total",
        "The number of times this client’s connections sent empty queries to the server.",
    ),
    "TOTAL_SSL_CONNECTIONS": _column(
        _C,
        "total_ssl_connections_total",
        "The number of times this client’s connections connected using SSL to the server.",
    ),
    "MAX_STATEMENT_TIME_EXCEEDED": _column(
        _C,
        "max_statement_time_exceeded_total",
        "The number of times a statement was aborted, because it was executed longer "
        "than its MAX_STATEMENT_TIME threshold.",
    ),
}


def _text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", "replace")
    return "" if value is None else str(value)


def _column_type(column_name: str) -> _ColumnType:
    known = CLIENT_STATISTICS_TYPES.get(column_name)
    if known is not None:
        return known
    return _ColumnType(
        ValueType.UNTYPED,
        Desc(
            build_fq_name(
                NAMESPACE, INFORMATION_SCHEMA, f"client_statistics_{column_name.lower()}"
            ),
            f"Unsupported metric from column {column_name}",
            _LABELS,
        ),
    )


class ScrapeClientStat(Scraper):
    """Collects per-client statistics when userstat is enabled."""

    name = "info_schema.clientstats"
    help = "If running with userstat=1, set to true to collect client statistics"
    version = 5.5

    def scrape(self, db: Any) -> Iterator[Metric]:
        try:
            row = query_row(db, USERSTAT_CHECK_QUERY)
        except Exception:  # any driver error means the statistics are unavailable
            row = None
        if row is None or len(row) < 2:
            logger.debug("Detailed client stats are not available.")
            return
        var_name, var_value = _text(row[0]), _text(row[1])
        if var_value == "OFF":
            logger.debug("MySQL @@%s is OFF.", var_name)
            return

        columns, rows = query(db, CLIENT_STAT_QUERY)
        # The first column holds the client name; the others hold numbers.
        column_types = [_column_type(name) for name in columns[1:]]
        for client_row in rows:
            client = _text(client_row[0])
            values = [float(value) for value in client_row[1:]]
            for column_type, value in zip(column_types, values):
                yield column_type.desc.metric(column_type.value_type, value, client)