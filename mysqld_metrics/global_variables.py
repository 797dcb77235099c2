"""Metrics from ``SHOW GLOBAL VARIABLES``."""

from __future__ import annotations

import re
from collections.abc import Iterator
from typing import Any

from .core import (
    NAMESPACE,
    Desc,
    Metric,
    Scraper,
    ValueType,
    build_fq_name,
    new_desc,
    parse_status,
    query,
)

SUBSYSTEM = "global_variables"
GLOBAL_VARIABLES_QUERY = "SHOW GLOBAL VARIABLES"

GENERIC_HELP = "Generic gauge metric from SHOW GLOBAL VARIABLES."

# Help strings for the MyRocks variables; any other variable gets GENERIC_HELP.
GLOBAL_VARIABLES_HELP: dict[str, str] = {
    "rocksdb_access_hint_on_compaction_start": "Access pattern hint applied to compaction input files.",
    "rocksdb_advise_random_on_open": "Whether files are opened with a random access hint.",
    "rocksdb_allow_concurrent_memtable_write": "Whether several writers may update memtables at once.",
    "rocksdb_allow_mmap_reads": "Whether data files may be memory-mapped for reading.",
    "rocksdb_allow_mmap_writes": "Whether data files may be memory-mapped for writing.",
    "rocksdb_block_cache_size": "Bytes reserved for the LRU block cache.",
    "rocksdb_block_restart_interval": "Keys per run of delta-encoded data.",
    "rocksdb_block_size_deviation": "Free-space percentage below which a data block is closed.",
    "rocksdb_block_size": "Data block size used when reading SST files.",
    "rocksdb_bulk_load_size": "Keys accumulated before a commit during bulk loading.",
    "rocksdb_bulk_load": "Whether uniqueness checks and row locks are skipped for bulk loading.",
    "rocksdb_bytes_per_sync": "Bytes written to data files between background syncs.",
    "rocksdb_cache_index_and_filter_blocks": "Whether index and filter blocks are kept in the block cache.",
    "rocksdb_checksums_pct": "Percentage of rows that get MyRocks checksums.",
    "rocksdb_collect_sst_properties": "Whether per-file statistics are gathered for the optimizer.",
    "rocksdb_commit_in_the_middle": "Whether bulk statements commit every bulk-load-size rows.",
    "rocksdb_compaction_readahead_size": "Readahead size used during compaction; zero disables it.",
    "rocksdb_compaction_sequential_deletes_count_sd": "Whether single deletes count toward sequential deletes.",
    "rocksdb_compaction_sequential_deletes_file_size": "Minimum file size for delete-triggered compaction.",
    "rocksdb_compaction_sequential_deletes_window": "Key window inspected for delete markers.",
    "rocksdb_compaction_sequential_deletes": "Delete markers in a window that trigger compaction.",
    "rocksdb_create_if_missing": "Whether a missing database is created.",
    "rocksdb_create_missing_column_families": "Whether missing column families are created.",
    "rocksdb_db_write_buffer_size": "Memtable size per column family before a flush.",
    "rocksdb_deadlock_detect": "Whether deadlock detection is on.",
    "rocksdb_debug_optimizer_no_zero_cardinality": "Testing switch that stops cardinality calculation.",
    "rocksdb_delayed_write_rate": "Write rate in bytes per second once soft limits are reached.",
    "rocksdb_delete_obsolete_files_period_micros": "Interval at which obsolete files are removed.",
    "rocksdb_enable_bulk_load_api": "Whether bulk loading writes SST files directly.",
    "rocksdb_enable_thread_tracking": "Whether the status of database threads is tracked.",
    "rocksdb_enable_write_thread_adaptive_yield": "Whether the write group leader spins before blocking.",
    "rocksdb_error_if_exists": "Whether opening an existing database is an error.",
    "rocksdb_flush_log_at_trx_commit": "Log sync policy on commit: 0 never, 1 always, 2 on a timer.",
    "rocksdb_flush_memtable_on_analyze": "Whether ANALYZE TABLE flushes the memtable first.",
    "rocksdb_force_compute_memtable_stats": "Whether memtable data is included in index statistics.",
    "rocksdb_force_flush_memtable_now": "Flushes the memtables to data files when set.",
    "rocksdb_force_index_records_in_range": "Row estimate reported when an index is forced.",
    "rocksdb_hash_index_allow_collision": "Whether hash index entries may collide.",
    "rocksdb_keep_log_file_num": "Maximum number of info LOG files kept.",
    "rocksdb_lock_scanned_rows": "Whether rows scanned by UPDATE stay locked.",
    "rocksdb_lock_wait_timeout": "Seconds to wait for a row lock.",
    "rocksdb_log_file_time_to_roll": "Seconds an info LOG file covers before rolling.",
    "rocksdb_manifest_preallocation_size": "Bytes preallocated for the MANIFEST file.",
    "rocksdb_max_open_files": "Maximum number of open file handles.",
    "rocksdb_max_row_locks": "Maximum row locks a transaction may hold.",
    "rocksdb_max_subcompactions": "Maximum threads per compaction job.",
    "rocksdb_max_total_wal_size": "Maximum total size of retained WAL files.",
    "rocksdb_merge_buf_size": "Merge buffer size used when building secondary keys.",
    "rocksdb_merge_combine_read_size": "Merge combine buffer size used when building secondary keys.",
    "rocksdb_new_table_reader_for_compaction_inputs": "Whether compaction inputs get their own table readers.",
    "rocksdb_no_block_cache": "Whether the block cache is disabled for a column family.",
    "rocksdb_paranoid_checks": "Whether newly written files are read back and verified.",
    "rocksdb_pause_background_work": "Testing switch that pauses background compactions.",
    "rocksdb_perf_context_level": "Detail level captured by the perf context.",
    "rocksdb_persistent_cache_size_mb": "Persistent cache size in megabytes.",
    "rocksdb_pin_l0_filter_and_index_blocks_in_cache": "Whether level-0 filter and index blocks are pinned in cache.",
    "rocksdb_print_snapshot_conflict_queries": "Whether snapshot conflict queries are logged.",
    "rocksdb_rate_limiter_bytes_per_sec": "Write rate limit for flushes and compaction.",
    "rocksdb_records_in_range": "Testing override for records-in-range.",
    "rocksdb_seconds_between_stat_computes": "Seconds between table statistics recomputations.",
    "rocksdb_signal_drop_index_thread": "Testing switch that signals the drop index thread.",
    "rocksdb_skip_bloom_filter_on_read": "Whether bloom filters are skipped on reads.",
    "rocksdb_skip_fill_cache": "Whether reads skip filling the cache.",
    "rocksdb_stats_dump_period_sec": "Seconds between statistics dumps to the info LOG.",
    "rocksdb_store_row_debug_checksums": "Whether checksums are written with records.",
    "rocksdb_strict_collation_check": "Whether index collations are verified.",
    "rocksdb_table_cache_numshardbits": "Number of table cache shards, as bits.",
    "rocksdb_use_adaptive_mutex": "Whether mutexes spin in user space before blocking.",
    "rocksdb_use_direct_reads": "Whether reads bypass the operating system cache.",
    "rocksdb_use_fsync": "Whether fsync is used instead of fdatasync.",
    "rocksdb_validate_tables": "Whether table definitions are checked against stored tables.",
    "rocksdb_verify_row_debug_checksums": "Whether checksums are verified on read.",
    "rocksdb_wal_bytes_per_sync": "Bytes written to the WAL between syncs.",
    "rocksdb_wal_recovery_mode": "Tolerance level when recovering the WAL after a crash.",
    "rocksdb_wal_size_limit_mb": "WAL size in megabytes that triggers memtable flushes.",
    "rocksdb_wal_ttl_seconds": "Maximum age of a WAL file in seconds.",
    "rocksdb_whole_key_filtering": "Whether bloom filters use whole keys rather than prefixes.",
    "rocksdb_write_disable_wal": "Whether writes skip the WAL.",
    "rocksdb_write_ignore_missing_column_families": "Whether writes to missing column families are ignored.",
}

VERSION_INFO_DESC = Desc(
    build_fq_name(NAMESPACE, "version", "info"),
    "MySQL version and distribution.",
    ("innodb_version", "version", "version_comment"),
)
GALERA_VARIABLES_INFO_DESC = Desc(
    build_fq_name(NAMESPACE, "galera", "variables_info"),
    "PXC/Galera variables information.",
    ("wsrep_cluster_name",),
)
GALERA_GCACHE_SIZE_DESC = new_desc("galera", "gcache_size_bytes", "PXC/Galera gcache size.")

_TEXT_ITEMS = (
    "innodb_version",
    "version",
    "version_comment",
    "wsrep_cluster_name",
    "wsrep_provider_options",
)

_GCACHE_SIZE_RE = re.compile(r"gcache.size = (\d+)([MG]?);", re.ASCII)
_INVALID_NAME_CHAR_RE = re.compile(r"[^a-zA-Z0-9_]")

_UNIT_FACTORS = {"": 1, "M": 1024 * 1024, "G": 1024 * 1024 * 1024}


def parse_wsrep_provider_options(opts: str) -> float:
    """Return ``gcache.size`` in bytes from ``wsrep_provider_options``, or 0."""
    match = _GCACHE_SIZE_RE.search(opts)
    if match is None:
        return 0.0
    return float(match.group(1)) * _UNIT_FACTORS[match.group(2)]


def valid_prometheus_name(s: str) -> str:
    """Replace characters a metric name cannot hold with ``_`` and lower-case it."""
    return _INVALID_NAME_CHAR_RE.sub("_", s).lower().replace(".", "_")


def _text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", "replace")
    return "" if value is None else str(value)


class ScrapeGlobalVariables(Scraper):
    """Collects every numeric global variable as a gauge, plus version info."""

    name = SUBSYSTEM
    help = "Collect from SHOW GLOBAL VARIABLES"
    version = 5.1

    def scrape(self, db: Any) -> Iterator[Metric]:
        _, rows = query(db, GLOBAL_VARIABLES_QUERY)
        text_items = dict.fromkeys(_TEXT_ITEMS, "")

        for raw_key, value in rows:
            key = valid_prometheus_name(_text(raw_key))
            number = parse_status(value)
            if number is not None:
                help_text = GLOBAL_VARIABLES_HELP.get(key) or GENERIC_HELP
                yield new_desc(SUBSYSTEM, key, help_text).metric(ValueType.GAUGE, number)
                continue
            if key in text_items:
                text_items[key] = _text(value)

        yield VERSION_INFO_DESC.metric(
            ValueType.GAUGE,
            1,
            text_items["innodb_version"],
            text_items["version"],
            text_items["version_comment"],
        )

        if text_items["wsrep_cluster_name"]:
            yield GALERA_VARIABLES_INFO_DESC.metric(
                ValueType.GAUGE, 1, text_items["wsrep_cluster_name"]
            )

        if text_items["wsrep_provider_options"]:
            yield GALERA_GCACHE_SIZE_DESC.metric(
                ValueType.GAUGE,
                parse_wsrep_provider_options(text_items["wsrep_provider_options"]),
            )