"""Metrics from ``SHOW BINARY LOGS``."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from .core import NAMESPACE, Desc, Metric, Scraper, ValueType, build_fq_name, query, query_row

SUBSYSTEM = "binlog"
LOGBIN_QUERY = "SELECT @@log_bin"
BINLOG_QUERY = "SHOW BINARY LOGS"

BINLOG_SIZE_DESC = Desc(
    build_fq_name(NAMESPACE, SUBSYSTEM, "size_bytes"),
    "Combined size of all registered binlog files.",
)
BINLOG_FILES_DESC = Desc(
    build_fq_name(NAMESPACE, SUBSYSTEM, "files"),
    "Number of registered binlog files.",
)
BINLOG_FILE_NUMBER_DESC = Desc(
    build_fq_name(NAMESPACE, SUBSYSTEM, "file_number"),
    "The last binlog file number.",
)


def _text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", "replace")
    return "" if value is None else str(value)


def _file_number(filename: str) -> float:
    parts = filename.split(".")
    if len(parts) < 2:
        return 0.0
    try:
        return float(parts[1])
    except ValueError:
        return 0.0


class ScrapeBinlogSize(Scraper):
    """Collects the current size of all registered binlog files."""

    name = "binlog_size"
    help = "Collect the current size of all registered binlog files"
    version = 5.1

    def scrape(self, db: Any) -> Iterator[Metric]:
        row = query_row(db, LOGBIN_QUERY)
        if row is None:
            raise LookupError(f"{LOGBIN_QUERY} returned no rows")
        # With log_bin off SHOW BINARY LOGS fails, so stop here.
        if int(row[0]) == 0:
            return

        _, rows = query(db, BINLOG_QUERY)
        size = 0
        count = 0
        filename = ""
        for log_row in rows:
            try:
                name, filesize = log_row
                filesize = int(filesize)
            except (TypeError, ValueError):
                return
            if filesize < 0:
                return
            filename = _text(name)
            size += filesize
            count += 1

        yield BINLOG_SIZE_DESC.metric(ValueType.GAUGE, size)
        yield BINLOG_FILES_DESC.metric(ValueType.GAUGE, count)
        # The last row names the newest binlog file.
        yield BINLOG_FILE_NUMBER_DESC.metric(ValueType.GAUGE, _file_number(filename))