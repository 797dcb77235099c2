import math

import pytest

from mysqld_metrics.core import (
    Desc,
    Metric,
    ValueType,
    build_fq_name,
    new_desc,
    parse_status,
    query,
    query_row,
)


class FakeCursor:
    def __init__(self, connection):
        self.connection = connection
        self.description = None
        self._rows = []
        self.closed = False

    def execute(self, sql):
        key = " ".join(sql.split())
        self.connection.executed.append(key)
        result = self.connection.responses[key]
        if isinstance(result, Exception):
            raise result
        columns, rows = result
        self.description = [(name, None, None, None, None, None, None) for name in columns]
        self._rows = list(rows)

    def fetchall(self):
        return self._rows

    def close(self):
        self.closed = True
        self.connection.closed_cursors += 1


class FakeConnection:
    def __init__(self, responses):
        self.responses = {" ".join(k.split()): v for k, v in responses.items()}
        self.executed = []
        self.closed_cursors = 0

    def cursor(self):
        return FakeCursor(self)


@pytest.mark.parametrize(
    "parts, expected",
    [
        (("mysql", "binlog", "size_bytes"), "mysql_binlog_size_bytes"),
        (("mysql", "", "up"), "mysql_up"),
        (("", "", "up"), "up"),
        (("mysql", "binlog", ""), ""),
    ],
)
def test_build_fq_name(parts, expected):
    assert build_fq_name(*parts) == expected


def test_new_desc_uses_mysql_namespace():
    desc = new_desc("engine_innodb", "queries_in_queue", "Queries in queue.")
    assert desc.fq_name == "mysql_engine_innodb_queries_in_queue"
    assert desc.help == "Queries in queue."
    assert desc.variable_labels == ()


@pytest.mark.parametrize(
    "data, expected",
    [
        ("Yes", 1.0),
        ("ON", 1.0),
        (b"ON", 1.0),
        ("No", 0.0),
        ("OFF", 0.0),
        ("Connecting", 0.0),
        ("Primary", 1.0),
        ("non-Primary", 0.0),
        ("NON-PRIMARY", 0.0),
        ("Disconnected", 0.0),
        ("123", 123.0),
        ("9115.904484", 9115.904484),
        (b"28800", 28800.0),
    ],
)
def test_parse_status_values(data, expected):
    assert parse_status(data) == expected


@pytest.mark.parametrize(
    "data",
    ["", None, "abc", " 1", "1_000", "mysql-bin.000001", "Thu Jan  1 00:00:00 1970", "/tmp"],
)
def test_parse_status_unparsable(data):
    assert parse_status(data) is None


def test_parse_status_nan_is_float():
    value = parse_status("NaN")
    assert repr(value) == "nan"
    assert math.isnan(value)


def test_desc_metric_labels():
    desc = Desc("mysql_test", "Help.", ["a", "b"])
    metric = desc.metric(ValueType.COUNTER, 3, "x", "y")
    assert isinstance(metric, Metric)
    assert metric.labels == {"a": "x", "b": "y"}
    assert metric.value == 3.0
    assert metric.value_type is ValueType.COUNTER
    assert metric.name == "mysql_test"


def test_desc_metric_label_count_mismatch():
    desc = Desc("mysql_test", "Help.", ("a",))
    with pytest.raises(ValueError):
        desc.metric(ValueType.GAUGE, 1)


def test_query_returns_columns_and_rows():
    db = FakeConnection({"SELECT a, b": (["a", "b"], [(1, 2), (3, 4)])})
    columns, rows = query(db, "SELECT a, b")
    assert columns == ["a", "b"]
    assert rows == [(1, 2), (3, 4)]
    assert db.closed_cursors == 1


def test_query_row_first_and_none():
    db = FakeConnection({"SELECT 1": ([""], [(1,), (2,)]), "SELECT 2": ([""], [])})
    assert query_row(db, "SELECT 1") == (1,)
    assert query_row(db, "SELECT 2") is None


def test_query_propagates_errors_and_closes_cursor():
    db = FakeConnection({"SELECT x": RuntimeError("boom")})
    with pytest.raises(RuntimeError, match="boom"):
        query(db, "SELECT x")
    assert db.closed_cursors == 1