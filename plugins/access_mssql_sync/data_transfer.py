"""
Data Transfer Module

This module pushes cached Access snapshots into SQL Server tables.

Each table is loaded on its own connection inside a single transaction with
pyodbc fast_executemany batches. Columns are bound by name, never by
position, so a target table whose columns are ordered differently still
receives the right values. A failed load rolls back completely.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging
import os
import time

from access_mssql_sync.ddl_generator import quote_identifier
from access_mssql_sync.odbc_helper import OdbcConnectionHelper
from access_mssql_sync.snapshot import TableSnapshot
from access_mssql_sync.table_cache import SnapshotCache
from access_mssql_sync.table_config import TableRegistry

logger = logging.getLogger(__name__)


DEFAULT_BATCH_SIZE = 1000

# Rows of the failing batch written to the log on error
MAX_DIAGNOSTIC_ROWS = 20


def _get_batch_size() -> int:
    return max(1, int(os.environ.get('BULK_INSERT_BATCH_SIZE', str(DEFAULT_BATCH_SIZE))))


class DataTransfer:
    """
    Transfers cached snapshots from memory into SQL Server.

    transfer_one appends rows to a table; update_one replaces the table's
    contents. Both raise on failure after rolling back, leaving the decision
    to continue with other tables to the caller.
    """

    def __init__(
        self,
        mssql_conn_id: str,
        cache: SnapshotCache,
        registry: TableRegistry,
        batch_size: Optional[int] = None,
    ):
        """
        Initialize the data transfer.

        Args:
            mssql_conn_id: Airflow connection ID or ODBC connection string for SQL Server
            cache: Cache holding the snapshots to transfer
            registry: Registry of tables to transfer
            batch_size: Rows per executemany batch (default BULK_INSERT_BATCH_SIZE or 1000)
        """
        self.mssql_hook = OdbcConnectionHelper(odbc_conn_id=mssql_conn_id)
        self.cache = cache
        self.registry = registry
        self.batch_size = batch_size or _get_batch_size()

    def transfer_all(self) -> Dict[str, Any]:
        """
        Transfer every registered table that has cached data.

        Missing or empty cache entries are skipped with a warning. A failed
        table is recorded and the remaining tables are still transferred.

        Returns:
            Dictionary with 'transferred' (name -> rows), 'skipped' (names)
            and 'failed' (name -> error message)
        """
        result: Dict[str, Any] = {'transferred': {}, 'skipped': [], 'failed': {}}

        for identity in self.registry:
            table_name = identity.sanitized_name
            snapshot = self.cache.get(table_name)

            if snapshot is None:
                logger.warning(f"No cached data for {table_name}, skipping transfer")
                result['skipped'].append(table_name)
                continue
            if snapshot.is_empty:
                logger.warning(f"Cached data for {table_name} is empty, skipping transfer")
                result['skipped'].append(table_name)
                continue

            try:
                result['transferred'][table_name] = self.transfer_one(table_name, snapshot)
            except Exception as e:
                result['failed'][table_name] = str(e)

        logger.info(
            f"Transfer complete: {len(result['transferred'])} tables transferred, "
            f"{len(result['skipped'])} skipped, {len(result['failed'])} failed"
        )
        return result

    def transfer_one(self, table_name: str, snapshot: TableSnapshot) -> int:
        """
        Bulk insert a snapshot into a SQL Server table.

        Args:
            table_name: Sanitized table name in SQL Server
            snapshot: Rows to insert

        Returns:
            Number of rows inserted
        """
        return self._load(table_name, snapshot, replace=False)

    def update_one(self, table_name: str, snapshot: TableSnapshot) -> int:
        """
        Replace the contents of a SQL Server table with a snapshot.

        The delete and the reload share one transaction, so a failed reload
        leaves the previous rows in place.

        Args:
            table_name: Sanitized table name in SQL Server
            snapshot: New table contents

        Returns:
            Number of rows inserted
        """
        return self._load(table_name, snapshot, replace=True)

    def _load(self, table_name: str, snapshot: TableSnapshot, replace: bool) -> int:
        start_time = time.time()
        conn = None
        batch: Sequence[Tuple[Any, ...]] = ()
        rows_inserted = 0

        try:
            conn = self.mssql_hook.get_conn(autocommit=False)
            cursor = conn.cursor()

            target_columns = self._map_columns(cursor, table_name, snapshot.columns)

            if replace:
                cursor.execute(f"DELETE FROM {quote_identifier(table_name)}")
                logger.info(f"Deleted {cursor.rowcount} existing rows from {table_name}")

            insert_sql = self._build_insert(table_name, target_columns)
            logger.debug(f"SQL: {insert_sql}")

            cursor.fast_executemany = True
            for batch_start in range(0, snapshot.row_count, self.batch_size):
                batch = snapshot.rows[batch_start:batch_start + self.batch_size]
                cursor.executemany(insert_sql, [list(row) for row in batch])
                rows_inserted += len(batch)

            conn.commit()
        except Exception as e:
            if conn is not None:
                conn.rollback()
            logger.error(f"Error transferring data to {table_name}: {e}")
            if batch:
                logger.error(
                    f"Failing batch ({min(len(batch), MAX_DIAGNOSTIC_ROWS)} of {len(batch)} rows):\n"
                    f"{snapshot.to_tsv(batch[:MAX_DIAGNOSTIC_ROWS])}"
                )
            raise
        finally:
            self.mssql_hook.release_conn(conn)

        elapsed = time.time() - start_time
        logger.info(
            f"Successfully transferred {rows_inserted} rows to {table_name} in {elapsed:.2f}s"
        )
        return rows_inserted

    def _get_target_columns(self, cursor, table_name: str) -> List[str]:
        """
        Get column names of a SQL Server table.

        Args:
            cursor: Open cursor on the target connection
            table_name: Target table name

        Returns:
            List of column names in ordinal order
        """
        cursor.execute(
            "SELECT COLUMN_NAME FROM INFORMATION_SCHEMA.COLUMNS "
            "WHERE TABLE_NAME = ? ORDER BY ORDINAL_POSITION",
            [table_name],
        )
        return [row[0] for row in cursor.fetchall()]

    def _map_columns(self, cursor, table_name: str, source_columns: Sequence[str]) -> List[str]:
        """
        Map snapshot columns to target columns by name (case-insensitive).

        Returns:
            Target column names in snapshot column order

        Raises:
            ValueError: If the target table is missing or lacks a source column
        """
        target_columns = self._get_target_columns(cursor, table_name)
        if not target_columns:
            raise ValueError(f"Target table {table_name} does not exist or has no columns")

        by_lower = {name.lower(): name for name in target_columns}
        missing = [name for name in source_columns if name.lower() not in by_lower]
        if missing:
            raise ValueError(f"Columns {missing} not found in target table {table_name}")

        return [by_lower[name.lower()] for name in source_columns]

    def _build_insert(self, table_name: str, columns: Sequence[str]) -> str:
        column_list = ', '.join(quote_identifier(col) for col in columns)
        placeholders = ', '.join('?' * len(columns))
        return f"INSERT INTO {quote_identifier(table_name)} ({column_list}) VALUES ({placeholders})"


def full_migration(loader, transfer: DataTransfer) -> Dict[str, Any]:
    """
    Load every Access table into memory, then transfer it to SQL Server.

    Args:
        loader: SnapshotLoader sharing the transfer's cache and registry
        transfer: DataTransfer for the target database

    Returns:
        Dictionary with the 'load' and 'transfer' summaries
    """
    load_result = loader.load_all()
    transfer_result = transfer.transfer_all()
    return {'load': load_result, 'transfer': transfer_result}
