# mysqld_metrics

A library that reads Prometheus-style metrics from a MySQL server. It also
works with MariaDB, Percona Server and Galera. It has no database driver of
its own: you pass it any DB-API 2.0 connection (for example one made with
`pymysql`) and it gives back metric values for you to publish as you like.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Metrics and descriptors

`mysqld_metrics.core` holds the building blocks:

- `Desc(fq_name, help, variable_labels=())` describes a metric family.
  `Desc.metric(value_type, value, *label_values)` builds one sample. It
  raises `ValueError` if the number of label values is wrong.
- `Metric` is a frozen sample with `desc`, `value_type`, `value` and
  `label_values`. It also has `name` (the full name) and `labels` (a dict of
  label name to value).
- `ValueType` is one of `COUNTER`, `GAUGE` or `UNTYPED`.
- `Scraper` is the abstract base of every scraper. It has the class
  attributes `name`, `help` and `version`; `version` is the oldest server
  version the scraper works with. Its `scrape(db)` method yields `Metric`
  objects.
- `build_fq_name(namespace, subsystem, name)` and `new_desc(subsystem,
  name, help)` build names and descriptors in the `mysql` namespace.
- `query(db, sql)` returns `(column_names, rows)`. `query_row(db, sql)`
  returns the first row, or `None` when the query returns no rows.
- `parse_status(data)` turns a status or variable value into a number:
  `ON`, `Yes` and `Primary` become 1; `OFF`, `No`, `Connecting`,
  `Disconnected` and `non-Primary` become 0; numeric text becomes a float.
  Anything else gives `None`.

## Scrapers

| Module | Class | Source |
| --- | --- | --- |
| `global_status` | `ScrapeGlobalStatus` | `SHOW GLOBAL STATUS` |
| `global_variables` | `ScrapeGlobalVariables` | `SHOW GLOBAL VARIABLES` |
| `binlog` | `ScrapeBinlogSize` | `SHOW BINARY LOGS` (skipped when `log_bin` is off) |
| `engine_innodb` | `ScrapeEngineInnodbStatus` | `SHOW ENGINE INNODB STATUS` |
| `engine_tokudb` | `ScrapeEngineTokudbStatus` | `SHOW ENGINE TOKUDB STATUS` |
| `heartbeat` | `ScrapeHeartbeat(database="heartbeat", table="heartbeat")` | a pt-heartbeat style table |
| `auto_increment` | `ScrapeAutoIncrementColumns` | auto_increment columns in `information_schema` |
| `innodb_metrics` | `ScrapeInnodbMetrics` | `information_schema.innodb_metrics` |
| `innodb_tablespaces` | `ScrapeInfoSchemaInnodbTablespaces(tablespaces_query=None)` | InnoDB tablespaces |
| `client_stats` | `ScrapeClientStat` | `information_schema.client_statistics` (only when `userstat` is on) |
| `innodb_cmp` | `ScrapeInnodbCmp` | `information_schema.INNODB_CMP` |
| `innodb_cmpmem` | `ScrapeInnodbCmpMem` | `information_schema.INNODB_CMPMEM` |
| `custom_query` | `ScrapeCustomQuery(resolution, directory=None)` | user-defined queries from YAML files |

`ScrapeInfoSchemaInnodbTablespaces` picks its query on the first scrape
with `detect_tablespaces_query(db)`, unless you pass one yourself.

```python
import pymysql
from mysqld_metrics.global_status import ScrapeGlobalStatus

password = "password"
db = pymysql.connect(host="localhost", user="user", password=password)

for metric in ScrapeGlobalStatus().scrape(db):
    print(metric.name, metric.labels, metric.value)
```

## Running several scrapers together

`mysqld_metrics.exporter.Exporter(db, metrics, scrapers)` runs a list of
scrapers against one connection. `metrics` comes from
`new_metrics(resolution="")`. Each call to `Exporter.collect()` does this:

1. It pings the server, using `db.ping()` if the connection has one and
   `SELECT 1` if not, and tries a second time on failure. If both tries
   fail, `mysql_up` is set to 0 and the scrape stops.
2. It reads the server version with `get_mysql_version(db)`. This returns
   the major.minor number, or 999 when the version cannot be read.
3. It runs every scraper whose `version` is not newer than the server. A
   scraper that raises is counted in the scrape-error counter for its
   collector and sets the last-scrape-error gauge to 1.
4. It adds one duration sample for the connection and one for each
   scraper that ran.

After the scraped metrics, `collect()` yields the exporter's own metrics
(`Counter`, `CounterVec` and `Gauge` objects held in `ExporterMetrics`):

- total scrapes
- scrape errors per collector
- last scrape error
- `mysql_up`

These keep their values from one call to the next.
`Exporter.describe()` yields the descriptors of these four metrics.

## Custom queries

`ScrapeCustomQuery` reads every `.yml` or `.yaml` file in `directory`, in
name order. `resolution` is a `MetricResolution` (`LR`, `MR` or `HR`) and
is used in the scraper's name. The scraper then runs the queries it found.
A file looks like this:

```yaml
experiment_garden:
  query: "SELECT fruit, amount FROM experiment.garden;"
  metrics:
    - fruit:
        usage: "LABEL"
        description: "Fruit names"
    - amount:
        usage: "COUNTER"
        description: "Amount fruits in the garden"
```

Metric names are `<namespace>_<column>`, and `DURATION` columns get a
`_milliseconds` suffix. Valid `usage` values are `DISCARD`, `LABEL`,
`COUNTER`, `GAUGE`, `MAPPEDMETRIC` and `DURATION` (see `ColumnUsage`).
Columns not listed in the file are reported as untyped if they hold
numbers.

The following raise `CustomQueryError`:

- no directory is given, or the directory cannot be read
- a file cannot be read, or its YAML is malformed
- a query fails

When queries fail, the metrics from the other queries are yielded first,
and then the error is raised. The lower-level functions are also
available: `add_queries`, `make_desc_map`, `query_namespace_mapping`,
`query_namespace_mappings`, `db_to_float64`, `db_to_string` and
`string_to_column_usage`.

## Helpers

- `global_variables.valid_prometheus_name(s)` and
  `engine_tokudb.sanitize_tokudb_metric(name)` turn names into valid metric
  names.
- `global_variables.parse_wsrep_provider_options(opts)` returns
  `gcache.size` in bytes, or 0 when it is absent.

## What this package does not do

It has no command-line program and no HTTP server. It does not serve a
`/metrics` endpoint and does not write the Prometheus text exposition
format. It does not open database connections, and it reads no
configuration files or flags. Your code has to do all of these.