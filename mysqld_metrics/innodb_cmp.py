"""Metrics from ``information_schema.INNODB_CMP``."""

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

INNODB_CMP_QUERY = """
                SELECT
                  page_size, compress_ops, compress_ops_ok, compress_time, uncompress_ops, uncompress_time
                  FROM information_schema.INNODB_CMP
                """

_LABELS = ("page_size",)


class _ColumnType(NamedTuple):
    value_type: ValueType
    desc: Desc


def _counter(name: str, help_text: str) -> _ColumnType:
    return _ColumnType(
        ValueType.COUNTER,
        Desc(build_fq_name(NAMESPACE, INFORMATION_SCHEMA, name), help_text, _LABELS),
    )


# Known INNODB_CMP columns; unknown ones are reported as untyped.
INNODB_CMP_TYPES: dict[str, _ColumnType] = {
    "compress_ops": _counter(
        "innodb_cmp_compress_ops_total",
        "Number of times a B-tree page of the size PAGE_SIZE has been compressed.",
    ),
    "compress_ops_ok": _counter(
        "innodb_cmp_compress_ops_ok_total",
        "Number of times a B-tree page of the size PAGE_SIZE has been successfully compressed.",
    ),
    "compress_time": _counter(
        "innodb_cmp_compress_time_seconds_total",
        "Total time in seconds spent in attempts to compress B-tree pages.",
    ),
    "uncompress_ops": _counter(
        "innodb_cmp_uncompress_ops_total",
        "Number of times a B-tree page has been uncompressed.",
    ),
    "uncompress_time": _counter(
        "innodb_cmp_uncompress_time_seconds_total",
        "Total time in seconds spent in uncompressing B-tree pages.",
    ),
}


def _text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", "replace")
    return "" if value is None else str(value)


def _column_type(column_name: str) -> _ColumnType:
    known = INNODB_CMP_TYPES.get(column_name)
    if known is not None:
        return known
    return _ColumnType(
        ValueType.UNTYPED,
        Desc(
            build_fq_name(NAMESPACE, INFORMATION_SCHEMA, f"innodb_cmp_{column_name.lower()}"),
            f"Unsupported metric from column {column_name}",
            _LABELS,
        ),
    )


class ScrapeInnodbCmp(Scraper):
    """Collects InnoDB compression statistics per page size."""

    name = "info_schema.innodb_cmp"
    help = (
        "Please set next variables SET GLOBAL innodb_file_per_table=1;"
        "SET GLOBAL innodb_file_format=Barracuda;"
    )
    version = 5.5

    def scrape(self, db: Any) -> Iterator[Metric]:
        try:
            columns, rows = query(db, INNODB_CMP_QUERY)
        except Exception:
            logger.debug("INNODB_CMP stats are not available.")
            raise

        # The first column holds the page size; the others hold numbers.
        column_types = [_column_type(name) for name in columns[1:]]
        for cmp_row in rows:
            page_size = _text(cmp_row[0])
            values = [float(value) for value in cmp_row[1:]]
            for column_type, value in zip(column_types, values):
                yield column_type.desc.metric(column_type.value_type, value, page_size)