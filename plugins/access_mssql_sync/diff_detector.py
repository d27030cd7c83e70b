"""
Diff Detector Module

This module detects changed Access tables by comparing a fresh snapshot of
each table with the cached baseline, and pushes changed tables to SQL Server.

Access has no change notification and tables are not guaranteed to have a
primary key, so a change is detected at table level and propagated with a
full replace of the target table.
"""

from enum import Enum
import logging

from access_mssql_sync.snapshot import tables_match
from access_mssql_sync.table_cache import CachePriority
from access_mssql_sync.table_config import TableIdentity

logger = logging.getLogger(__name__)


class TableStatus(Enum):
    """Outcome of checking one table."""

    BASELINE = 'baseline'  # first sighting, cached without a target update
    UNCHANGED = 'unchanged'
    UPDATED = 'updated'


class DiffDetector:
    """
    Compares Access tables against their cached baseline.

    Args:
        loader: SnapshotLoader providing direct reads and the shared cache
        transfer: DataTransfer used to replace changed tables in SQL Server
    """

    def __init__(self, loader, transfer):
        self.loader = loader
        self.transfer = transfer
        self.cache = loader.cache

    def check_and_update(self, identity: TableIdentity) -> TableStatus:
        """
        Check one table for changes and propagate them.

        1. Load the table directly from Access (bypassing the cache)
        2. Compare it with the cached baseline
        3. No baseline: cache it as the baseline
           Different: replace the baseline and the SQL Server table

        Args:
            identity: The table to check

        Returns:
            TableStatus describing what happened
        """
        table_name = identity.sanitized_name
        logger.info(f"Checking updates for {table_name}")

        recent = self.loader.load_one(identity.original_name)
        baseline = self.cache.get(table_name)

        if baseline is None:
            self._store(table_name, recent)
            logger.info(f"No baseline for {table_name}, cached {recent.row_count} rows as baseline")
            return TableStatus.BASELINE

        match = tables_match(baseline, recent)
        if match:
            logger.info(f"Check completed for {table_name}: No Change")
            return TableStatus.UNCHANGED

        logger.info(f"Change detected in {table_name}: {match.message}")
        self._store(table_name, recent)
        logger.info(f"Table {table_name} updated in cache.")

        logger.info(f"Updating SQL Server with changes for {table_name}")
        try:
            self.transfer.update_one(table_name, recent)
        except Exception:
            # Keep the old baseline so the next pass detects the change again
            self._store(table_name, baseline)
            raise
        logger.info(f"Check completed for {table_name}: Updated")
        return TableStatus.UPDATED

    def _store(self, table_name: str, snapshot) -> None:
        self.cache.set(
            table_name,
            snapshot,
            sliding_expiration=self.loader.sliding_expiration,
            priority=CachePriority.HIGH,
        )
