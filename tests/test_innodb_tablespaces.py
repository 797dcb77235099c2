import pytest

from mysqld_metrics.core import ValueType
from mysqld_metrics.innodb_tablespaces import (
    INNODB_TABLESPACES_QUERY_V57,
    INNODB_TABLESPACES_QUERY_V80,
    SYS_TABLESPACES_CHECK_QUERY,
    ScrapeInfoSchemaInnodbTablespaces,
    detect_tablespaces_query,
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


COLUMNS = [
    "SPACE",
    "NAME",
    "FILE_FORMAT",
    "ROW_FORMAT",
    "SPACE_TYPE",
    "FILE_SIZE",
    "ALLOCATED_SIZE",
]
ROWS = [
    (1, "sys/sys_config", "Barracuda", "Dynamic", "Single", 100, 100),
    (2, "db/compressed", "Barracuda", "Compressed", "Single", 300, 200),
]

EXPECTED = [
    (
        {
            "tablespace_name": "sys/sys_config",
            "file_format": "Barracuda",
            "row_format": "Dynamic",
            "space_type": "Single",
        },
        1,
        ValueType.GAUGE,
    ),
    ({"tablespace_name": "sys/sys_config"}, 100, ValueType.GAUGE),
    ({"tablespace_name": "sys/sys_config"}, 100, ValueType.GAUGE),
    (
        {
            "tablespace_name": "db/compressed",
            "file_format": "Barracuda",
            "row_format": "Compressed",
            "space_type": "Single",
        },
        2,
        ValueType.GAUGE,
    ),
    ({"tablespace_name": "db/compressed"}, 300, ValueType.GAUGE),
    ({"tablespace_name": "db/compressed"}, 200, ValueType.GAUGE),
]


def test_scrape_with_given_query():
    db = FakeConnection({INNODB_TABLESPACES_QUERY_V57: (COLUMNS, ROWS)})
    scraper = ScrapeInfoSchemaInnodbTablespaces(INNODB_TABLESPACES_QUERY_V57)
    metrics = list(scraper.scrape(db))
    assert [(m.labels, m.value, m.value_type) for m in metrics] == EXPECTED
    assert db.executed == [INNODB_TABLESPACES_QUERY_V57]


def test_metric_names():
    db = FakeConnection({INNODB_TABLESPACES_QUERY_V57: (COLUMNS, ROWS[:1])})
    scraper = ScrapeInfoSchemaInnodbTablespaces(INNODB_TABLESPACES_QUERY_V57)
    assert [m.name for m in scraper.scrape(db)] == [
        "mysql_info_schema_innodb_tablespace_space_info",
        "mysql_info_schema_innodb_tablespace_file_size_bytes",
        "mysql_info_schema_innodb_tablespace_allocated_size_bytes",
    ]


def test_detect_finds_sys_tablespaces():
    db = FakeConnection({SYS_TABLESPACES_CHECK_QUERY: (["Tables"], [("INNODB_SYS_TABLESPACES",)])})
    assert detect_tablespaces_query(db) == INNODB_TABLESPACES_QUERY_V57


def test_detect_without_sys_tablespaces_picks_v80():
    db = FakeConnection({SYS_TABLESPACES_CHECK_QUERY: (["Tables"], [])})
    assert detect_tablespaces_query(db) == INNODB_TABLESPACES_QUERY_V80


def test_detect_on_error_keeps_v57():
    db = FakeConnection({SYS_TABLESPACES_CHECK_QUERY: RuntimeError("denied")})
    assert detect_tablespaces_query(db) == INNODB_TABLESPACES_QUERY_V57


def test_detection_runs_once():
    db = FakeConnection(
        {
            SYS_TABLESPACES_CHECK_QUERY: (["Tables"], []),
            INNODB_TABLESPACES_QUERY_V80: (COLUMNS, ROWS),
        }
    )
    scraper = ScrapeInfoSchemaInnodbTablespaces()
    first = list(scraper.scrape(db))
    second = list(scraper.scrape(db))
    assert len(first) == len(second) == 6
    assert scraper.tablespaces_query == INNODB_TABLESPACES_QUERY_V80
    assert db.executed == [
        SYS_TABLESPACES_CHECK_QUERY,
        INNODB_TABLESPACES_QUERY_V80,
        INNODB_TABLESPACES_QUERY_V80,
    ]


def test_query_error_propagates():
    db = FakeConnection({INNODB_TABLESPACES_QUERY_V57: RuntimeError("gone away")})
    scraper = ScrapeInfoSchemaInnodbTablespaces(INNODB_TABLESPACES_QUERY_V57)
    with pytest.raises(RuntimeError, match="gone away"):
        list(scraper.scrape(db))


def test_negative_size_is_rejected():
    rows = [(1, "sys/sys_config", "Barracuda", "Dynamic", "Single", -1, 100)]
    db = FakeConnection({INNODB_TABLESPACES_QUERY_V57: (COLUMNS, rows)})
    scraper = ScrapeInfoSchemaInnodbTablespaces(INNODB_TABLESPACES_QUERY_V57)
    with pytest.raises(ValueError):
        list(scraper.scrape(db))