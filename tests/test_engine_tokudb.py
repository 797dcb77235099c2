import pytest

from mysqld_metrics.core import ValueType
from mysqld_metrics.engine_tokudb import (
    ENGINE_TOKUDB_STATUS_QUERY,
    ScrapeEngineTokudbStatus,
    sanitize_tokudb_metric,
)


class FakeCursor:
    def __init__(self, connection):
        self.connection = connection
        self.description = None
        self._rows = []

    def execute(self, sql):
        key = " ".join(sql.split())
        self.connection.executed.append(key)
        result = self.connection.responses[key]
        if isinstance(result, Exception):
            raise result
        columns, rows = result
        self.description = [(name,) + (None,) * 6 for name in columns]
        self._rows = list(rows)

    def fetchall(self):
        return self._rows

    def close(self):
        pass


class FakeConnection:
    def __init__(self, responses):
        self.responses = {" ".join(k.split()): v for k, v in responses.items()}
        self.executed = []

    def cursor(self):
        return FakeCursor(self)


@pytest.mark.parametrize(
    "metric, expected",
    [
        (
            "loader: number of calls to loader->close() that failed",
            "loader_number_of_calls_to_loader_close_that_failed",
        ),
        (
            "ft: promotion: stopped anyway, after locking the child",
            "ft_promotion_stopped_anyway_after_locking_the_child",
        ),
        (
            "ft: basement nodes deserialized with fixed-keysize",
            "ft_basement_nodes_deserialized_with_fixed_keysize",
        ),
        (
            "memory: number of bytes used (requested + overhead)",
            "memory_number_of_bytes_used_requested_and_overhead",
        ),
        (
            "ft: uncompressed / compressed bytes written (overall)",
            "ft_uncompressed_and_compressed_bytes_written_overall",
        ),
    ],
)
def test_sanitize_tokudb_metric(metric, expected):
    assert sanitize_tokudb_metric(metric) == expected


def test_scrape_engine_tokudb_status():
    rows = [
        ("TokuDB", "indexer: number of calls to indexer->build() succeeded", "1"),
        ("TokuDB", "ft: promotion: stopped anyway, after locking the child", "45316247"),
        ("TokuDB", "memory: mallocator version", "3.3.1-0-g9ef9d9e8c271cdf14f664b871a8f98c827714784"),
        ("TokuDB", "filesystem: most recent disk full", "Thu Jan  1 00:00:00 1970"),
        ("TokuDB", "locktree: time spent ending the STO early (seconds)", "9115.904484"),
    ]
    db = FakeConnection({ENGINE_TOKUDB_STATUS_QUERY: (["Type", "Name", "Status"], rows)})
    metrics = list(ScrapeEngineTokudbStatus().scrape(db))
    assert [(m.labels, m.value, m.value_type) for m in metrics] == [
        ({}, 1, ValueType.UNTYPED),
        ({}, 45316247, ValueType.UNTYPED),
        ({}, 9115.904484, ValueType.UNTYPED),
    ]
    assert metrics[1].name == "mysql_engine_tokudb_ft_promotion_stopped_anyway_after_locking_the_child"
    assert db.executed == [ENGINE_TOKUDB_STATUS_QUERY]


def test_query_error_propagates():
    db = FakeConnection({ENGINE_TOKUDB_STATUS_QUERY: RuntimeError("unknown storage engine")})
    with pytest.raises(RuntimeError, match="unknown storage engine"):
        list(ScrapeEngineTokudbStatus().scrape(db))