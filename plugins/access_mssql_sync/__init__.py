"""
Access to SQL Server Synchronization Utilities

This package migrates an Access database into SQL Server and keeps the
SQL Server copy synchronized while the Access file is still in use.

Modules:
- type_mapping: Map Access column types to SQL Server
- schema_extractor: Read table and column metadata from Access
- ddl_generator: Generate and execute SQL Server DDL
- snapshot_loader: Load Access tables into the in-memory cache
- data_transfer: Bulk load cached tables into SQL Server
- diff_detector: Detect changed tables against the cached baseline
- sync_controller: Background polling loop
- validation: Verify SQL Server contents against the cache

Supporting modules:
- odbc_helper: pyodbc connections and driver error classification
- table_config: Table name sanitization and the TableRegistry
- table_cache: Snapshot cache with sliding expiration
- snapshot: Snapshot data model and matching
- cell_values: Cell kinds, equality and canonical text

Tuning (environment variables):
- SYNC_CHECK_INTERVAL / SYNC_PASS_INTERVAL: Polling delays in seconds
- SOURCE_LOCK_RETRIES / SOURCE_LOCK_RETRY_DELAY: Retry policy for a locked Access file
- CACHE_SLIDING_EXPIRATION_HOURS: Idle window for cached snapshots
- BULK_INSERT_BATCH_SIZE: Rows per executemany batch
"""

__version__ = "1.0.0"

# Core modules
from access_mssql_sync import type_mapping
from access_mssql_sync import schema_extractor
from access_mssql_sync import ddl_generator
from access_mssql_sync import snapshot_loader
from access_mssql_sync import data_transfer
from access_mssql_sync import validation

# Synchronization modules
from access_mssql_sync import diff_detector
from access_mssql_sync import sync_controller

__all__ = [
    "type_mapping",
    "schema_extractor",
    "ddl_generator",
    "snapshot_loader",
    "data_transfer",
    "validation",
    "diff_detector",
    "sync_controller",
]
