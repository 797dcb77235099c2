"""Scrapers, an exporter and custom YAML queries that read Prometheus-style metrics from a MySQL server over a DB-API connection."""

__version__ = "0.1.0"