"""Metrics from user-defined queries described in YAML files."""

from __future__ import annotations

import enum
import logging
import math
import os
import re
import struct
from collections.abc import Callable, Iterator, Mapping, MutableMapping
from contextlib import closing
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from fractions import Fraction
from functools import partial
from pathlib import Path
from typing import Any

import yaml

from .core import Desc, Metric, Scraper, ValueType

logger = logging.getLogger(__name__)

_QUERY_FILE_EXTENSIONS = (".yml", ".yaml")

_NANOSECONDS_PER_MILLISECOND = 1_000_000
_MAX_DURATION_NS = 2**63 - 1
_DURATION_UNITS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_DURATION_PART_RE = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


class CustomQueryError(Exception):
    """Raised when custom queries cannot be loaded or run."""


class ColumnUsage(enum.Enum):
    """How a column of a custom query turns into a metric."""

    DISCARD = "DISCARD"
    LABEL = "LABEL"
    COUNTER = "COUNTER"
    GAUGE = "GAUGE"
    MAPPED_METRIC = "MAPPEDMETRIC"
    DURATION = "DURATION"


class MetricResolution(str, enum.Enum):
    """Resolution a set of custom queries is collected at."""

    LR = "lr"
    MR = "mr"
    HR = "hr"


@dataclass
class ColumnMapping:
    """A column's description as written in the YAML file."""

    usage: ColumnUsage = ColumnUsage.DISCARD
    description: str = ""
    mapping: dict[str, float] | None = None


@dataclass(frozen=True)
class MetricMap:
    """How one column is reported: its descriptor, type and conversion."""

    conversion: Callable[[Any], float | None]
    discard: bool = False
    value_type: ValueType | None = None
    desc: Desc | None = None


@dataclass(frozen=True)
class MetricMapNamespace:
    """Column mappings of one query, sharing the label columns."""

    labels: tuple[str, ...]
    column_mappings: dict[str, MetricMap]


def string_to_column_usage(s: str) -> ColumnUsage:
    """Return the column usage named by ``s``."""
    try:
        return ColumnUsage(s)
    except ValueError:
        raise CustomQueryError(f"wrong ColumnUsage given : {s}") from None


def _require(value: Any, kind: type) -> Any:
    if not isinstance(value, kind):
        raise CustomQueryError(f"incorrect yaml format for {value}")
    return value


def add_queries(
    content: bytes | str,
    exporter_map: MutableMapping[str, MetricMapNamespace],
    custom_query_map: MutableMapping[str, str],
) -> None:
    """Load the queries in ``content`` into the two maps.

    Queries carry no version requirements: the user is trusted to know the server.
    """
    try:
        extra = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise CustomQueryError(str(exc)) from exc
    if extra is None:
        extra = {}
    _require(extra, dict)

    metric_maps: dict[str, dict[str, ColumnMapping]] = {}
    for raw_metric, specs in extra.items():
        metric = str(raw_metric)
        logger.debug("New user metric namespace from YAML: %s", metric)
        for key, value in _require(specs, dict).items():
            if key == "query":
                custom_query_map[metric] = _require(value, str)
            elif key == "metrics":
                for column in _require(value, list):
                    for column_name, attrs in _require(column, dict).items():
                        namespace_map = metric_maps.setdefault(metric, {})
                        column_mapping = ColumnMapping()
                        for attr_key, attr_value in _require(attrs, dict).items():
                            if attr_key == "usage":
                                column_mapping.usage = string_to_column_usage(
                                    _require(attr_value, str)
                                )
                            elif attr_key == "description":
                                column_mapping.description = _require(attr_value, str)
                        namespace_map[str(column_name)] = column_mapping

    make_desc_map(metric_maps, exporter_map)


def _discard_conversion(_value: Any) -> float:
    return math.nan


def _mapped_conversion(mapping: Mapping[str, float], value: Any) -> float | None:
    if not isinstance(value, str):
        return None
    return mapping.get(value)


def _parse_go_duration(text: str) -> int:
    """Parse a duration such as ``1h30m`` or ``-2.5s`` into nanoseconds."""
    body = text
    sign = 1
    if body[:1] in ("+", "-") and body:
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    if body == "0":
        return 0
    if not body:
        raise ValueError(f"invalid duration {text!r}")
    total = Fraction(0)
    position = 0
    while position < len(body):
        match = _DURATION_PART_RE.match(body, position)
        if match is None:
            raise ValueError(f"invalid duration {text!r}")
        total += Fraction(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    nanoseconds = int(total)
    if nanoseconds > _MAX_DURATION_NS:
        raise ValueError(f"invalid duration {text!r}")
    return sign * nanoseconds


def _duration_conversion(column_name: str, value: Any) -> float | None:
    if isinstance(value, (bytes, bytearray)):
        text = bytes(value).decode("utf-8", "replace")
    elif isinstance(value, str):
        text = value
    else:
        logger.error("DURATION conversion metric was not a string")
        return None
    if text == "-1":
        return None
    try:
        nanoseconds = _parse_go_duration(text)
    except ValueError as exc:
        logger.error("Failed converting result to metric: %s %r %s", column_name, value, exc)
        return None
    milliseconds = abs(nanoseconds) // _NANOSECONDS_PER_MILLISECOND
    return float(-milliseconds if nanoseconds < 0 else milliseconds)


def _metric_map(
    namespace: str, column_name: str, column_mapping: ColumnMapping, labels: tuple[str, ...]
) -> MetricMap:
    usage = column_mapping.usage
    if usage in (ColumnUsage.DISCARD, ColumnUsage.LABEL):
        return MetricMap(conversion=_discard_conversion, discard=True)

    metric_name = f"{namespace}_{column_name}"
    conversion: Callable[[Any], float | None] = db_to_float64
    if usage is ColumnUsage.DURATION:
        metric_name += "_milliseconds"
        conversion = partial(_duration_conversion, column_name)
    elif usage is ColumnUsage.MAPPED_METRIC:
        conversion = partial(_mapped_conversion, dict(column_mapping.mapping or {}))

    value_type = ValueType.COUNTER if usage is ColumnUsage.COUNTER else ValueType.GAUGE
    return MetricMap(
        conversion=conversion,
        value_type=value_type,
        desc=Desc(metric_name, column_mapping.description, labels),
    )


def make_desc_map(
    metric_maps: Mapping[str, Mapping[str, ColumnMapping]],
    exporter_map: MutableMapping[str, MetricMapNamespace],
) -> None:
    """Turn loaded column mappings into descriptor mappings in ``exporter_map``."""
    for namespace, mappings in metric_maps.items():
        labels = tuple(
            name for name, mapping in mappings.items() if mapping.usage is ColumnUsage.LABEL
        )
        column_maps = {
            name: _metric_map(namespace, name, mapping, labels)
            for name, mapping in mappings.items()
        }
        exporter_map[namespace] = MetricMapNamespace(labels, column_maps)


def _parse_float(text: str) -> float | None:
    if not text or text != text.strip() or "_" in text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if math.isinf(number) and text.lstrip("+-").lower() not in ("inf", "infinity"):
        return None
    return number


def db_to_float64(value: Any) -> float | None:
    """Convert a database value to a float; NULL becomes NaN, failures None."""
    if value is None:
        return math.nan
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, (bytes, bytearray, memoryview)):
        text = bytes(value).decode("utf-8", "replace")
    elif isinstance(value, str):
        text = value
    else:
        return None
    number = _parse_float(text)
    if number is None:
        logger.warning("Could not parse %r", value)
    return number


def _to_float32(value: float) -> float:
    return struct.unpack("f", struct.pack("f", value))[0]


def _format_float32(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    try:
        single = _to_float32(value)
    except OverflowError:
        single = math.inf if value > 0 else -math.inf
    if math.isinf(single):
        return "+Inf" if single > 0 else "-Inf"
    text = f"{single:.9g}"
    for precision in range(1, 10):
        candidate = f"{single:.{precision}g}"
        try:
            if _to_float32(float(candidate)) == single:
                text = candidate
                break
        except OverflowError:
            continue
    return format(Decimal(text), "f")


def db_to_string(value: Any) -> str | None:
    """Convert a database value to a label value; NULL becomes "", failures None."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_float32(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return str(math.floor(value.timestamp()))
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", "replace")
    if isinstance(value, str):
        return value
    return None


def _display(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", "replace")
    return str(value)


def query_namespace_mapping(
    db: Any,
    namespace: str,
    mapping: MetricMapNamespace,
    custom_queries: Mapping[str, str],
) -> tuple[list[Metric], list[CustomQueryError]]:
    """Run the query of one namespace.

    Returns the metrics and the non-fatal errors; raises CustomQueryError when
    the query cannot run at all.
    """
    if namespace not in custom_queries:
        raise CustomQueryError(f"query not found for namespace: {namespace}")
    sql = custom_queries[namespace]
    # An empty query is disabled: nothing to collect.
    if not sql:
        return [], []

    try:
        cursor = db.cursor()
    except Exception as exc:
        raise CustomQueryError(f"error running query on database: {namespace}, {exc}") from exc
    with closing(cursor):
        try:
            cursor.execute(sql)
        except Exception as exc:
            raise CustomQueryError(
                f"error running query on database: {namespace}, {exc}"
            ) from exc
        try:
            column_names = [str(description[0]) for description in cursor.description or ()]
        except Exception as exc:
            raise CustomQueryError(
                f"error retrieving column list for:  {namespace}, {exc}"
            ) from exc
        try:
            rows = [tuple(row) for row in cursor.fetchall()]
        except Exception as exc:
            raise CustomQueryError(f"error retrieving rows: {namespace}, {exc}") from exc

    column_index = {name: index for index, name in enumerate(column_names)}
    metrics: list[Metric] = []
    errors: list[CustomQueryError] = []
    for row in rows:
        labels = []
        for label in mapping.labels:
            text = db_to_string(row[column_index.get(label, 0)])
            if text is None:
                logger.info("converted NULL to an empty string")
                text = ""
            labels.append(text)

        for column_name, raw in zip(column_names, row):
            metric_map = mapping.column_mappings.get(column_name)
            if metric_map is not None:
                if metric_map.discard:
                    continue
                value = db_to_float64(raw)
                if value is None:
                    errors.append(
                        CustomQueryError(
                            f"unexpected error parsing column: {namespace}, "
                            f"{column_name}, {_display(raw)}"
                        )
                    )
                    continue
                metrics.append(metric_map.desc.metric(metric_map.value_type, value, *labels))
            else:
                # Unknown columns are reported untyped when they hold numbers.
                desc = Desc(
                    f"{namespace}_{column_name}",
                    f"Unknown metric from {namespace}",
                    mapping.labels,
                )
                value = db_to_float64(raw)
                if value is None:
                    errors.append(
                        CustomQueryError(
                            f"unparseable column type - discarding: {namespace}, {column_name}"
                        )
                    )
                    continue
                metrics.append(desc.metric(ValueType.UNTYPED, value, *labels))
    return metrics, errors


def query_namespace_mappings(
    db: Any,
    metric_map: Mapping[str, MetricMapNamespace],
    custom_queries: Mapping[str, str],
) -> tuple[list[Metric], dict[str, CustomQueryError]]:
    """Run every namespace's query; return the metrics and the fatal errors by namespace."""
    metrics: list[Metric] = []
    namespace_errors: dict[str, CustomQueryError] = {}
    for namespace, mapping in metric_map.items():
        try:
            found, nonfatal = query_namespace_mapping(db, namespace, mapping, custom_queries)
        except CustomQueryError as exc:
            namespace_errors[namespace] = exc
            continue
        metrics.extend(found)
        for error in nonfatal:
            logger.info("%s", error)
    return metrics, namespace_errors


def _extension(name: str) -> str:
    index = name.rfind(".")
    return name[index:] if index >= 0 else ""


@dataclass
class ScrapeCustomQuery(Scraper):
    """Collects metrics from the YAML query files in a directory."""

    resolution: MetricResolution
    directory: str | os.PathLike[str] | None = None

    version = 5.1

    def __post_init__(self) -> None:
        self.resolution = MetricResolution(self.resolution)

    @property
    def name(self) -> str:  # type: ignore[override]
        return f"custom_query.{self.resolution.value}"

    @property
    def help(self) -> str:  # type: ignore[override]
        return f"Collect the metrics from custom queries for {self.resolution.value} resolution."

    def scrape(self, db: Any) -> Iterator[Metric]:
        if self.directory is None:
            raise CustomQueryError(
                'failed read dir "" for custom query. reason: no directory configured'
            )
        directory = os.fspath(self.directory)
        try:
            entries = sorted(Path(directory).iterdir(), key=lambda entry: entry.name)
        except OSError as exc:
            raise CustomQueryError(
                f'failed read dir "{directory}" for custom query. reason: {exc}'
            ) from exc

        exporter_map: dict[str, MetricMapNamespace] = {}
        query_map: dict[str, str] = {}
        for entry in entries:
            if entry.is_dir() or _extension(entry.name) not in _QUERY_FILE_EXTENSIONS:
                continue
            try:
                content = entry.read_bytes()
            except OSError as exc:
                raise CustomQueryError(f"failed to open custom queries:{exc}") from exc
            try:
                add_queries(content, exporter_map, query_map)
            except CustomQueryError as exc:
                raise CustomQueryError(f"failed to add custom queries:{exc}") from exc

        metrics, errors = query_namespace_mappings(db, exporter_map, query_map)
        yield from metrics
        if errors:
            raise CustomQueryError(
                ":".join(f"{namespace}:{error}" for namespace, error in errors.items())
            )