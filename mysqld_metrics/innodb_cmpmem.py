"""Metrics from ``information_schema.INNODB_CMPMEM``."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any, NamedTuple

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

INNODB_CMPMEM_QUERY = """
                SELECT
                  page_size, buffer_pool_instance, pages_used, pages_free, relocation_ops, relocation_time
                  FROM information_schema.INNODB_CMPMEM
                """

_LABELS = ("page_size", "buffer")


class _ColumnType(NamedTuple):
    value_type: ValueType
    desc: Desc


def _counter(name: str, help_text: str) -> _ColumnType:
    return _ColumnType(
        ValueType.COUNTER,
        Desc(build_fq_name(NAMESPACE, INFORMATION_SCHEMA, name), help_text, _LABELS),
    )


# Known INNODB_CMPMEM columns; unknown ones are reported as untyped.
INNODB_CMPMEM_TYPES: dict[str, _ColumnType] = {
    "pages_used": _counter(
        "innodb_cmpmem_pages_used_total",
        "Number of blocks of the size PAGE_SIZE that are currently in use.",
    ),
    "pages_free": _counter(
        "innodb_cmpmem_pages_free_total",
        "Number of blocks of the size PAGE_SIZE that are currently available for allocation.",
    ),
    "relocation_ops": _counter(
        "innodb_cmpmem_relocation_ops_total",
        "Number of times a block of the size PAGE_SIZE has been relocated.",
    ),
    "relocation_time": _counter(
        "innodb_cmpmem_relocation_time_seconds_total",
        "Total time in microseconds spent in relocating blocks of the size PAGE_SIZE.",
    ),
}


def _text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", "replace")
    return "" if value is None else str(value)


def _column_type(column_name: str) -> _ColumnType:
    known = INNODB_CMPMEM_TYPES.get(column_name)
    if known is not None:
        return known
    return _ColumnType(
        ValueType.UNTYPED,
        Desc(
            build_fq_name(
                NAMESPACE, INFORMATION_SCHEMA, f"innodb_cmpmem_{column_name.lower()}"
            ),
            f"Unsupported metric from column {column_name}",
            _LABELS,
        ),
    )


class ScrapeInnodbCmpMem(Scraper):
    """Collects InnoDB compressed buffer pool statistics per page size and buffer."""

    name = "info_schema.innodb_cmpmem"
    help = (
        "Please set next variables SET GLOBAL innodb_file_per_table=1;"
        "SET GLOBAL innodb_file_format=Barracuda;"
    )
    version = 5.5

    def scrape(self, db: Any) -> Iterator[Metric]:
        try:
            columns, rows = query(db, INNODB_CMPMEM_QUERY)
        except Exception:
            logger.debug("INNODB_CMPMEM stats are not available.")
            raise

        # The first two columns hold the page size and the buffer; the rest hold numbers.
        value_columns = columns[2:]
        column_types = [_column_type(name) for name in value_columns]
        for cmpmem_row in rows:
            page_size = _text(cmpmem_row[0])
            buffer = _text(cmpmem_row[1])
            values = [float(value) for value in cmpmem_row[2:]]
            for column_name, column_type, value in zip(value_columns, column_types, values):
                if column_name == "relocation_time":
                    value = value / 1000
                yield column_type.desc.metric(column_type.value_type, value, page_size, buffer)