"""Metrics about auto_increment columns from information_schema."""

from __future__ import annotations

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

# Bits available to a signed value of each integer type; unsigned types get one more.
_SIGNED_BITS = (
    ("tinyint", 7),
    ("smallint", 15),
    ("mediumint", 23),
    ("int", 31),
    ("bigint", 63),
)
_BITS_CASE = " ".join(f"when '{kind}' then {bits}" for kind, bits in _SIGNED_BITS)

# STRAIGHT_JOIN keeps the optimizer from scanning tables before columns.
INFO_SCHEMA_AUTO_INCREMENT_QUERY = " ".join(
    [
        "SELECT t.table_schema, t.table_name, column_name, `auto_increment`,",
        f"pow(2, case data_type {_BITS_CASE} end"
        "+(column_type like '% unsigned'))-1 as max_int",
        "FROM information_schema.columns c",
        "STRAIGHT_JOIN information_schema.tables t",
        "ON BINARY t.table_schema = c.table_schema",
        "AND BINARY t.table_name = c.table_name",
        "WHERE c.extra = 'auto_increment'",
        "AND t.auto_increment IS NOT NULL",
    ]
)

_LABELS = ("schema", "table", "column")

AUTO_INCREMENT_DESC = Desc(
    build_fq_name(NAMESPACE, INFORMATION_SCHEMA, "auto_increment_column"),
    "The current value of an auto_increment column from information_schema.",
    _LABELS,
)
AUTO_INCREMENT_MAX_DESC = Desc(
    build_fq_name(NAMESPACE, INFORMATION_SCHEMA, "auto_increment_column_max"),
    "The max value of an auto_increment column from information_schema.",
    _LABELS,
)


class ScrapeAutoIncrementColumns(Scraper):
    """Collects current and maximum values of auto_increment columns."""

    name = "auto_increment.columns"
    help = "Collect auto_increment columns and max values from information_schema"
    version = 5.1

    def scrape(self, db: Any) -> Iterator[Metric]:
        _, rows = query(db, INFO_SCHEMA_AUTO_INCREMENT_QUERY)
        for schema, table, column, value, maximum in rows:
            labels = (str(schema), str(table), str(column))
            yield AUTO_INCREMENT_DESC.metric(ValueType.GAUGE, float(value), *labels)
            yield AUTO_INCREMENT_MAX_DESC.metric(ValueType.GAUGE, float(maximum), *labels)