[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mysqld_metrics"
version = "0.1.0"
description = "Collect Prometheus-style metrics from a MySQL server over any DB-API connection"
requires-python = ">=3.10"
keywords = ["mysql", "mariadb", "galera", "metrics", "monitoring", "prometheus"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database",
    "Topic :: System :: Monitoring",
]
dependencies = [
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["mysqld_metrics"]

[tool.pytest.ini_options]
addopts = "-ra"
