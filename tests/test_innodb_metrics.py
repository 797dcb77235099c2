import logging

import pytest

from mysqld_metrics.core import ValueType
from mysqld_metrics.innodb_metrics import (
    INFO_SCHEMA_INNODB_METRICS_QUERY,
    ScrapeInnodbMetrics,
)


def _norm(sql):
    return " ".join(sql.split())


class FakeCursor:
    def __init__(self, conn):
        self._conn = conn
        self.description = None
        self._rows = []

    def execute(self, sql):
        self._conn.executed.append(sql)
        result = self._conn.results[_norm(sql)]
        if isinstance(result, Exception):
            raise result
        columns, rows = result
        self.description = [(c, None, None, None, None, None, None) for c in columns]
        self._rows = list(rows)

    def fetchall(self):
        return list(self._rows)

    def close(self):
        pass


class FakeConnection:
    def __init__(self, results):
        self.results = {_norm(k): v for k, v in results.items()}
        self.executed = []

    def cursor(self):
        return FakeCursor(self)


COLUMNS = ["name", "subsystem", "type", "comment", "count"]

ROWS = [
    ("lock_timeouts", "lock", "counter", "Number of lock timeouts", 0),
    (
        "buffer_pool_reads",
        "buffer",
        "status_counter",
        "Number of reads directly from disk (innodb_buffer_pool_reads)",
        1,
    ),
    (
        "buffer_pool_size",
        "server",
        "value",
        "Server buffer pool size (all buffer pools) in bytes",
        2,
    ),
    ("buffer_page_read_system_page", "buffer_page_io", "counter", "Number of System Pages read", 3),
    (
        "buffer_page_written_undo_log",
        "buffer_page_io",
        "counter",
        "Number of Undo Log Pages written",
        4,
    ),
    ("buffer_pool_pages_dirty", "buffer", "gauge", "Number of dirt buffer pool pages", 5),
    ("buffer_pool_pages_data", "buffer", "gauge", "Number of data buffer pool pages", 6),
    ("buffer_pool_pages_total", "buffer", "gauge", "Number of total buffer pool pages", 7),
    ("NOPE", "buffer_page_io", "counter", "An invalid buffer_page_io metric", 999),
]


@pytest.fixture
def db():
    return FakeConnection({INFO_SCHEMA_INNODB_METRICS_QUERY: (COLUMNS, ROWS)})


def test_scrape_innodb_metrics(db):
    metrics = list(ScrapeInnodbMetrics().scrape(db))
    assert [(m.labels, m.value, m.value_type) for m in metrics] == [
        ({}, 0, ValueType.COUNTER),
        ({}, 1, ValueType.COUNTER),
        ({}, 2, ValueType.GAUGE),
        ({"type": "system_page"}, 3, ValueType.COUNTER),
        ({"type": "undo_log"}, 4, ValueType.COUNTER),
        ({}, 5, ValueType.GAUGE),
        ({"state": "data"}, 6, ValueType.GAUGE),
    ]


def test_metric_names_and_help(db):
    metrics = list(ScrapeInnodbMetrics().scrape(db))
    assert [m.name for m in metrics] == [
        "mysql_info_schema_innodb_metrics_lock_lock_timeouts_total",
        "mysql_info_schema_innodb_metrics_buffer_buffer_pool_reads_total",
        "mysql_info_schema_innodb_metrics_server_buffer_pool_size",
        "mysql_info_schema_innodb_metrics_buffer_page_read_total",
        "mysql_info_schema_innodb_metrics_buffer_page_written_total",
        "mysql_info_schema_innodb_metrics_buffer_pool_dirty_pages",
        "mysql_info_schema_innodb_metrics_buffer_pool_pages",
    ]
    assert metrics[0].desc.help == "Number of lock timeouts"


def test_invalid_buffer_page_io_name_is_logged(db, caplog):
    with caplog.at_level(logging.WARNING, logger="mysqld_metrics.innodb_metrics"):
        metrics = list(ScrapeInnodbMetrics().scrape(db))
    assert 999 not in [m.value for m in metrics]
    assert "NOPE" in caplog.text


def test_negative_counter_becomes_gauge():
    rows = [("odd_counter", "lock", "counter", "Broken counter", -5)]
    db = FakeConnection({INFO_SCHEMA_INNODB_METRICS_QUERY: (COLUMNS, rows)})
    metrics = list(ScrapeInnodbMetrics().scrape(db))
    assert [(m.name, m.value, m.value_type) for m in metrics] == [
        ("mysql_info_schema_innodb_metrics_lock_odd_counter", -5, ValueType.GAUGE)
    ]


def test_unmatched_buffer_metric_is_generic():
    rows = [("buffer_data_reads", "buffer", "status_counter", "Bytes read", 8)]
    db = FakeConnection({INFO_SCHEMA_INNODB_METRICS_QUERY: (COLUMNS, rows)})
    metrics = list(ScrapeInnodbMetrics().scrape(db))
    assert [(m.name, m.value_type) for m in metrics] == [
        ("mysql_info_schema_innodb_metrics_buffer_buffer_data_reads_total", ValueType.COUNTER)
    ]