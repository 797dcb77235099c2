"""The exporter: runs the scrapers against a connection and keeps its own metrics."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from .core import NAMESPACE, Desc, Metric, Scraper, ValueType, build_fq_name, query_row

logger = logging.getLogger(__name__)

EXPORTER = "exporter"
VERSION_QUERY = "SELECT @@version"
PING_QUERY = "SELECT 1"

SCRAPE_DURATION_DESC = Desc(
    build_fq_name(NAMESPACE, EXPORTER, "collector_duration_seconds"),
    "Collector time duration.",
    ("collector",),
)

_VERSION_RE = re.compile(r"\d+\.\d+", re.ASCII)


@dataclass
class Counter:
    """A counter that keeps its value between collections."""

    desc: Desc
    value: float = 0.0
    label_values: tuple[str, ...] = ()

    def inc(self) -> None:
        self.value += 1

    def collect(self) -> Iterator[Metric]:
        yield self.desc.metric(ValueType.COUNTER, self.value, *self.label_values)


@dataclass
class CounterVec:
    """A family of counters told apart by label values."""

    desc: Desc
    _children: dict[tuple[str, ...], Counter] = field(default_factory=dict, repr=False)

    def labels(self, *args: str) -> Counter:
        """Return the counter for these label values, creating it at zero."""
        if len(args) != len(self.desc.variable_labels):
            raise ValueError(
                f"{self.desc.fq_name}: expected {len(self.desc.variable_labels)} "
                f"label values, got {len(args)}"
            )
        key = tuple(args)
        child = self._children.get(key)
        if child is None:
            child = self._children[key] = Counter(self.desc, label_values=key)
        return child

    def collect(self) -> Iterator[Metric]:
        for child in self._children.values():
            yield from child.collect()


@dataclass
class Gauge:
    """A gauge that keeps its value between collections."""

    desc: Desc
    value: float = 0.0

    def set(self, value: float) -> None:
        self.value = float(value)

    def collect(self) -> Iterator[Metric]:
        yield self.desc.metric(ValueType.GAUGE, self.value)


@dataclass
class ExporterMetrics:
    """Exporter metrics whose values carry over between requests."""

    total_scrapes: Counter
    scrape_errors: CounterVec
    error: Gauge
    mysql_up: Gauge


def new_metrics(resolution: str = "") -> ExporterMetrics:
    """Create exporter metrics, with the resolution in the subsystem when given."""
    subsystem = f"{EXPORTER}_{resolution}" if resolution else EXPORTER
    return ExporterMetrics(
        total_scrapes=Counter(
            Desc(
                build_fq_name(NAMESPACE, subsystem, "scrapes_total"),
                "Total number of times MySQL was scraped for metrics.",
            )
        ),
        scrape_errors=CounterVec(
            Desc(
                build_fq_name(NAMESPACE, subsystem, "scrape_errors_total"),
                "Total number of times an error occurred scraping a MySQL.",
                ("collector",),
            )
        ),
        error=Gauge(
            Desc(
                build_fq_name(NAMESPACE, subsystem, "last_scrape_error"),
                "Whether the last scrape of metrics from MySQL resulted in an error "
                "(1 for error, 0 for success).",
            )
        ),
        mysql_up=Gauge(
            Desc(build_fq_name(NAMESPACE, "", "up"), "Whether the MySQL server is up.")
        ),
    )


def get_mysql_version(db: Any) -> float:
    """Return the server's major.minor version, or 999 when it cannot be read."""
    version = 0.0
    try:
        row = query_row(db, VERSION_QUERY)
    except Exception:
        row = None
    if row:
        text = row[0]
        if isinstance(text, (bytes, bytearray, memoryview)):
            text = bytes(text).decode("utf-8", "replace")
        match = _VERSION_RE.match("" if text is None else str(text))
        if match:
            version = float(match.group(0))
    # An unknown version is taken as large enough to enable every scraper.
    return version or 999.0


def _ping(db: Any) -> None:
    ping = getattr(db, "ping", None)
    if callable(ping):
        ping()
    else:
        query_row(db, PING_QUERY)


class Exporter:
    """Collects MySQL metrics from a connection through a set of scrapers."""

    def __init__(self, db: Any, metrics: ExporterMetrics, scrapers: Iterable[Scraper]):
        self.db = db
        self.metrics = metrics
        self.scrapers: Sequence[Scraper] = tuple(scrapers)

    def describe(self) -> Iterator[Desc]:
        yield self.metrics.total_scrapes.desc
        yield self.metrics.error.desc
        yield self.metrics.scrape_errors.desc
        yield self.metrics.mysql_up.desc

    def collect(self) -> Iterator[Metric]:
        """Scrape the server, then yield the scraped and the exporter's own metrics."""
        yield from self._scrape()
        yield from self.metrics.total_scrapes.collect()
        yield from self.metrics.error.collect()
        yield from self.metrics.scrape_errors.collect()
        yield from self.metrics.mysql_up.collect()

    def _scrape(self) -> list[Metric]:
        self.metrics.error.set(0)
        self.metrics.total_scrapes.inc()

        started = time.perf_counter()
        try:
            _ping(self.db)
        except Exception:
            # A failed ping may leave a stale connection; one retry clears it.
            try:
                _ping(self.db)
            except Exception as exc:
                logger.error("Error pinging mysqld: %s", exc)
                self.metrics.mysql_up.set(0)
                self.metrics.error.set(1)
                return []
        self.metrics.mysql_up.set(1)

        collected = [
            SCRAPE_DURATION_DESC.metric(
                ValueType.GAUGE, time.perf_counter() - started, "connection"
            )
        ]

        version = get_mysql_version(self.db)
        for scraper in self.scrapers:
            if version < scraper.version:
                continue
            label = "collect." + scraper.name
            started = time.perf_counter()
            try:
                for metric in scraper.scrape(self.db):
                    collected.append(metric)
            except Exception as exc:
                logger.error("Error scraping for %s: %s", label, exc)
                self.metrics.scrape_errors.labels(label).inc()
                self.metrics.error.set(1)
            collected.append(
                SCRAPE_DURATION_DESC.metric(
                    ValueType.GAUGE, time.perf_counter() - started, label
                )
            )
        return collected