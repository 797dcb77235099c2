import pytest

from mysqld_metrics.core import ValueType
from mysqld_metrics.engine_innodb import ENGINE_INNODB_STATUS_QUERY, ScrapeEngineInnodbStatus


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


SAMPLE = """
*** monitor report begins ***
averages over the previous 20 seconds
background loops: 3 active, 0 idle
reservation count 7, signal count 4
trx id counter 1200, history length 12
hash table size 1024, node heap has 0 buffers
log sequence number 5000, last checkpoint at 4990
buffer pool size 2048, free buffers 1900
row operations follow
661 queries inside InnoDB, 10 queries in queue
15 read views open inside InnoDB
0 RW transactions active inside InnoDB
rows inserted 4, updated 2, deleted 1, read 30
*** monitor report ends ***
"""


def test_scrape_engine_innodb_status():
    db = FakeConnection(
        {ENGINE_INNODB_STATUS_QUERY: (["Type", "Name", "Status"], [("InnoDB", "", SAMPLE)])}
    )
    metrics = list(ScrapeEngineInnodbStatus().scrape(db))
    assert [(m.labels, m.value, m.value_type) for m in metrics] == [
        ({}, 661, ValueType.GAUGE),
        ({}, 10, ValueType.GAUGE),
        ({}, 15, ValueType.GAUGE),
    ]
    assert [m.name for m in metrics] == [
        "mysql_engine_innodb_queries_inside_innodb",
        "mysql_engine_innodb_queries_in_queue",
        "mysql_engine_innodb_read_views_open_inside_innodb",
    ]
    assert db.executed == [ENGINE_INNODB_STATUS_QUERY]


def test_no_rows_yields_nothing():
    db = FakeConnection({ENGINE_INNODB_STATUS_QUERY: (["Type", "Name", "Status"], [])})
    assert list(ScrapeEngineInnodbStatus().scrape(db)) == []


def test_wrong_column_count_is_error():
    db = FakeConnection({ENGINE_INNODB_STATUS_QUERY: (["Type", "Status"], [("InnoDB", SAMPLE)])})
    with pytest.raises(ValueError):
        list(ScrapeEngineInnodbStatus().scrape(db))