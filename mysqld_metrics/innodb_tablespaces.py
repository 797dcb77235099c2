"""Metrics from ``information_schema.innodb_sys_tablespaces``."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
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
    query_row,
)

INNODB_TABLESPACES_QUERY_V57 = """
    SELECT
        SPACE,
        NAME,
        ifnull(FILE_FORMAT, 'NONE') as FILE_FORMAT,
        ifnull(ROW_FORMAT, 'NONE') as ROW_FORMAT,
        ifnull(SPACE_TYPE, 'NONE') as SPACE_TYPE,
        FILE_SIZE,
        ALLOCATED_SIZE
      FROM information_schema.innodb_sys_tablespaces
    """
INNODB_TABLESPACES_QUERY_V80 = """
    SELECT
        SPACE,
        NAME,
        'NONE' as FILE_FORMAT,
        ifnull(ROW_FORMAT, 'NONE') as ROW_FORMAT,
        ifnull(SPACE_TYPE, 'NONE') as SPACE_TYPE,
        FILE_SIZE,
        ALLOCATED_SIZE
      FROM information_schema.innodb_tablespaces
    """
SYS_TABLESPACES_CHECK_QUERY = (
    "SHOW TABLES FROM information_schema LIKE 'INNODB_SYS_TABLESPACES'"
)

TABLESPACE_INFO_DESC = Desc(
    build_fq_name(NAMESPACE, INFORMATION_SCHEMA, "innodb_tablespace_space_info"),
    "The Tablespace information and Space ID.",
    ("tablespace_name", "file_format", "row_format", "space_type"),
)
TABLESPACE_FILE_SIZE_DESC = Desc(
    build_fq_name(NAMESPACE, INFORMATION_SCHEMA, "innodb_tablespace_file_size_bytes"),
    "The apparent size of the file, which represents the maximum size of the file, uncompressed.",
    ("tablespace_name",),
)
TABLESPACE_ALLOCATED_SIZE_DESC = Desc(
    build_fq_name(NAMESPACE, INFORMATION_SCHEMA, "innodb_tablespace_allocated_size_bytes"),
    "The actual size of the file, which is the amount of space allocated on disk.",
    ("tablespace_name",),
)


def _text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", "replace")
    return "" if value is None else str(value)


def detect_tablespaces_query(db: Any) -> str:
    """Pick the tablespaces query that suits the server behind ``db``."""
    try:
        row = query_row(db, SYS_TABLESPACES_CHECK_QUERY)
    except Exception:  # any driver error: keep assuming 5.7 as the server default
        return INNODB_TABLESPACES_QUERY_V57
    # MySQL 8 renamed the table and dropped the file_format column.
    if row is None:
        return INNODB_TABLESPACES_QUERY_V80
    return INNODB_TABLESPACES_QUERY_V57


@dataclass
class ScrapeInfoSchemaInnodbTablespaces(Scraper):
    """Collects InnoDB tablespace ids and file sizes.

    The query is detected on the first scrape unless given up front.
    """

    tablespaces_query: str | None = None

    name = INFORMATION_SCHEMA + ".innodb_tablespaces"
    help = "Collect metrics from information_schema.innodb_sys_tablespaces"
    version = 8.0

    def scrape(self, db: Any) -> Iterator[Metric]:
        if self.tablespaces_query is None:
            self.tablespaces_query = detect_tablespaces_query(db)

        _, rows = query(db, self.tablespaces_query)
        for space, raw_name, file_format, row_format, space_type, file_size, allocated in rows:
            table_space = int(space)
            table_name = _text(raw_name)
            size = int(file_size)
            allocated_size = int(allocated)
            if table_space < 0 or size < 0 or allocated_size < 0:
                raise ValueError(f"negative tablespace value for {table_name!r}")
            yield TABLESPACE_INFO_DESC.metric(
                ValueType.GAUGE,
                table_space,
                table_name,
                _text(file_format),
                _text(row_format),
                _text(space_type),
            )
            yield TABLESPACE_FILE_SIZE_DESC.metric(ValueType.GAUGE, size, table_name)
            yield TABLESPACE_ALLOCATED_SIZE_DESC.metric(
                ValueType.GAUGE, allocated_size, table_name
            )