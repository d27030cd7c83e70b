"""
Snapshot Loader Module

This module reads full table contents from Access into memory.

Access allows a single process to hold the database file exclusively, so a
read can fail because another program has the file open. Those failures are
retried a fixed number of times with a fixed delay; any other failure aborts
the table immediately. Either way, the rest of a full load carries on.
"""

from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional
import logging
import os
import time

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from access_mssql_sync.ddl_generator import quote_identifier
from access_mssql_sync.odbc_helper import OdbcConnectionHelper, is_transient_error
from access_mssql_sync.schema_extractor import SchemaExtractor
from access_mssql_sync.snapshot import TableSnapshot
from access_mssql_sync.table_cache import CachePriority, SnapshotCache
from access_mssql_sync.table_config import TableNameCollisionError, TableRegistry

logger = logging.getLogger(__name__)


DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_RETRY_DELAY_SECONDS = 1.0
DEFAULT_SLIDING_EXPIRATION = timedelta(hours=17)


def _get_retry_config():
    """
    Get lock retry configuration from environment variables.

    Returns:
        Tuple of (max_attempts, retry_delay_seconds)
    """
    attempts = int(os.environ.get('SOURCE_LOCK_RETRIES', str(DEFAULT_MAX_ATTEMPTS)))
    delay = float(os.environ.get('SOURCE_LOCK_RETRY_DELAY', str(DEFAULT_RETRY_DELAY_SECONDS)))
    return max(1, attempts), max(0.0, delay)


class SnapshotLoader:
    """
    Loads Access tables into the snapshot cache.

    Usage:
        loader = SnapshotLoader("access_source", cache, registry)
        loader.load_all()
        recent = loader.load_one("tblPrinters")
    """

    def __init__(
        self,
        access_conn_id: str,
        cache: SnapshotCache,
        registry: TableRegistry,
        max_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        sliding_expiration: timedelta = DEFAULT_SLIDING_EXPIRATION,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the snapshot loader.

        Args:
            access_conn_id: Airflow connection ID or ODBC connection string for Access
            cache: Cache receiving loaded snapshots
            registry: Registry of original -> sanitized table names
            max_attempts: Attempts per table on lock contention (default 5)
            retry_delay: Seconds between attempts (default 1)
            sliding_expiration: Idle window for cached snapshots
            sleep: Sleep function used between attempts
        """
        env_attempts, env_delay = _get_retry_config()
        self.access_hook = OdbcConnectionHelper(odbc_conn_id=access_conn_id)
        self.extractor = SchemaExtractor(access_conn_id)
        self.cache = cache
        self.registry = registry
        self.max_attempts = max_attempts if max_attempts is not None else env_attempts
        self.retry_delay = retry_delay if retry_delay is not None else env_delay
        self.sliding_expiration = sliding_expiration
        self._sleep = sleep

    def load_all(self) -> Dict[str, Any]:
        """
        Load every Access user table into the cache and the registry.

        The table listing is retried on lock contention like every table read.
        If it still fails, nothing is loaded and the error is logged.

        Returns:
            Dictionary with 'loaded' (sanitized name -> row count) and
            'failed' (original name -> error message)
        """
        logger.info("Loading all tables from Access database into memory.")
        result: Dict[str, Any] = {'loaded': {}, 'failed': {}}

        try:
            tables = self._retryer()(self.extractor.list_tables)
        except Exception as e:
            logger.error(f"Could not list tables in Access database: {e}")
            return result

        for identity in tables:
            original = identity.original_name
            try:
                self.registry.check_available(original)
                snapshot = self.load_one(original)
                identity = self.registry.register(original)
            except TableNameCollisionError as e:
                logger.error(f"Skipping table {original}: {e}")
                result['failed'][original] = str(e)
                continue
            except Exception as e:
                if is_transient_error(e):
                    logger.error(
                        f"Giving up on table {original} after {self.max_attempts} attempts, "
                        f"database is locked: {e}"
                    )
                else:
                    logger.error(f"Failed to load table {original}: {e}")
                result['failed'][original] = str(e)
                continue

            self.cache.set(
                identity.sanitized_name,
                snapshot,
                sliding_expiration=self.sliding_expiration,
                priority=CachePriority.HIGH,
            )
            result['loaded'][identity.sanitized_name] = snapshot.row_count
            logger.info(f"Loaded {snapshot.row_count} rows from {original} into cache.")

        logger.info(
            f"Loaded {len(result['loaded'])} tables into memory, {len(result['failed'])} failed"
        )
        return result

    def load_one(self, table_name: str) -> TableSnapshot:
        """
        Read a table directly from Access, bypassing the cache.

        Lock contention is retried; other errors propagate immediately.

        Args:
            table_name: Original Access table name

        Returns:
            Snapshot of the table's current contents
        """
        return self._retryer()(self._read_table, table_name)

    def _retryer(self) -> Retrying:
        """Retry policy for Access reads: transient lock errors only, fixed delay."""
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.retry_delay),
            retry=retry_if_exception(is_transient_error),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )

    def _read_table(self, table_name: str) -> TableSnapshot:
        with self.access_hook.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT * FROM {quote_identifier(table_name)}")
            return TableSnapshot.from_cursor(cursor)

    def dump_cached_data(self) -> str:
        """
        Render every registered table's cached data as tab-separated text.

        Returns:
            Text block per table, or a 'no data' line for tables not in the cache
        """
        blocks: List[str] = []
        for identity in self.registry:
            snapshot = self.cache.get(identity.sanitized_name)
            if snapshot is None:
                blocks.append(f"No data found in cache for table {identity.sanitized_name}.")
                continue
            blocks.append(f"Data for table {identity.sanitized_name}:\n{snapshot.to_tsv()}")
        return '\n\n'.join(blocks)
