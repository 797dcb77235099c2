"""Metric descriptors, status parsing and query helpers shared by the scrapers."""

from __future__ import annotations

import enum
import re
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from contextlib import closing
from dataclasses import dataclass
from typing import Any, ClassVar

NAMESPACE = "mysql"
INFORMATION_SCHEMA = "info_schema"
PICO_SECONDS = 1e12
USERSTAT_CHECK_QUERY = (
    "SHOW VARIABLES WHERE Variable_Name='userstat'\n"
    "\t\tOR Variable_Name='userstat_running'"
)

_LOG_RE = re.compile(r".+\.(\d+)\Z", re.ASCII)

_TRUE_WORDS = frozenset({"Yes", "ON", "Primary"})
_FALSE_WORDS = frozenset({"No", "OFF", "Connecting", "Disconnected"})


class ValueType(enum.Enum):
    """Kind of a Prometheus sample."""

    COUNTER = "counter"
    GAUGE = "gauge"
    UNTYPED = "untyped"


@dataclass(frozen=True)
class Desc:
    """Describes a metric family: its full name, help text and label names."""

    fq_name: str
    help: str
    variable_labels: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "variable_labels", tuple(self.variable_labels or ()))

    def metric(self, value_type: ValueType, value: float, *args: str) -> Metric:
        """Build a constant sample of this family with the given label values."""
        if len(args) != len(self.variable_labels):
            raise ValueError(
                f"{self.fq_name}: expected {len(self.variable_labels)} label values, "
                f"got {len(args)}"
            )
        return Metric(self, value_type, float(value), tuple(args))


@dataclass(frozen=True)
class Metric:
    """A single sample: descriptor, type, value and label values."""

    desc: Desc
    value_type: ValueType
    value: float
    label_values: tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return self.desc.fq_name

    @property
    def labels(self) -> dict[str, str]:
        return dict(zip(self.desc.variable_labels, self.label_values))


class Scraper(ABC):
    """A source of metrics read from a MySQL connection."""

    name: ClassVar[str]
    help: ClassVar[str]
    version: ClassVar[float]

    @abstractmethod
    def scrape(self, db: Any) -> Iterator[Metric]:
        """Yield the metrics read through the DB-API connection ``db``."""


def build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    """Join the non-empty name parts with underscores; empty if ``name`` is empty."""
    if not name:
        return ""
    return "_".join(part for part in (namespace, subsystem, name) if part)


def new_desc(subsystem: str, name: str, help: str) -> Desc:
    """Descriptor without labels in the ``mysql`` namespace."""
    return Desc(build_fq_name(NAMESPACE, subsystem, name), help)


def _parse_float(text: str) -> float | None:
    if not text or not text.isascii() or text != text.strip() or "_" in text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def parse_status(data: Any) -> float | None:
    """Turn a status or variable value into a number, or None if it has none."""
    if data is None:
        text = ""
    elif isinstance(data, (bytes, bytearray, memoryview)):
        text = bytes(data).decode("utf-8", "replace")
    else:
        text = str(data)

    if text in _TRUE_WORDS:
        return 1.0
    if text in _FALSE_WORDS or text.casefold() == "non-primary":
        return 0.0
    match = _LOG_RE.search(text)
    if match:
        return _parse_float(match.group(0))
    return _parse_float(text)


def query(db: Any, sql: str) -> tuple[list[str], list[tuple]]:
    """Run ``sql`` and return the column names and all rows."""
    with closing(db.cursor()) as cursor:
        cursor.execute(sql)
        columns = [description[0] for description in cursor.description or ()]
        rows = [tuple(row) for row in cursor.fetchall()]
    return columns, rows


def query_row(db: Any, sql: str) -> tuple | None:
    """Run ``sql`` and return its first row, or None when it returns none."""
    _, rows = query(db, sql)
    return rows[0] if rows else None


__all__: Sequence[str] = (
    "Desc",
    "Metric",
    "Scraper",
    "ValueType",
    "build_fq_name",
    "new_desc",
    "parse_status",
    "query",
    "query_row",
)