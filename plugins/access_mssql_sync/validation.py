"""
Migration Validation Module

This module checks that SQL Server tables hold the same data as the cached
Access snapshots.

It is a smoke test rather than a full diff: row counts are compared first,
then cells in row and column order, stopping at the first mismatch. Cells
are compared as trimmed canonical text so that differences in how the two
drivers represent the same value (e.g. CURRENCY vs MONEY scale) do not
count as mismatches.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import logging
import pyodbc

from access_mssql_sync.cell_values import canonical_text
from access_mssql_sync.ddl_generator import quote_identifier
from access_mssql_sync.odbc_helper import OdbcConnectionHelper
from access_mssql_sync.snapshot import TableSnapshot
from access_mssql_sync.table_cache import SnapshotCache
from access_mssql_sync.table_config import TableRegistry

logger = logging.getLogger(__name__)


CONSISTENT = 'consistent'
MISSING_CACHE = 'missing_cache'
ROW_COUNT_MISMATCH = 'row_count_mismatch'
CELL_MISMATCH = 'cell_mismatch'
TARGET_ERROR = 'target_error'


@dataclass(frozen=True)
class VerificationReport:
    """Result of verifying one table."""

    table_name: str
    status: str
    message: str
    target_rows: Optional[int] = None
    cached_rows: Optional[int] = None
    row_index: Optional[int] = None
    column: Optional[str] = None
    target_value: Optional[str] = None
    cached_value: Optional[str] = None

    @property
    def consistent(self) -> bool:
        return self.status == CONSISTENT


class MigrationValidator:
    """Validates SQL Server table contents against the snapshot cache."""

    def __init__(self, mssql_conn_id: str, cache: SnapshotCache, registry: Optional[TableRegistry] = None):
        """
        Initialize the validator.

        Args:
            mssql_conn_id: Airflow connection ID or ODBC connection string for SQL Server
            cache: Cache holding the expected table contents
            registry: Registry used by verify_all
        """
        self.mssql_hook = OdbcConnectionHelper(odbc_conn_id=mssql_conn_id)
        self.cache = cache
        self.registry = registry

    def verify(self, table_name: str) -> VerificationReport:
        """
        Verify one SQL Server table against its cached snapshot.

        Args:
            table_name: Sanitized table name

        Returns:
            VerificationReport; .consistent is True only if every cell matches
        """
        logger.info(f"Start verify for {table_name}")

        cached = self.cache.get(table_name)
        if cached is None:
            report = VerificationReport(
                table_name, MISSING_CACHE, f"No cached data found for {table_name}."
            )
            logger.info(report.message)
            return report

        try:
            target = self._read_target(table_name, cached)
        except pyodbc.Error as e:
            report = VerificationReport(
                table_name,
                TARGET_ERROR,
                f"Could not read {table_name} from SQL Server: {e}",
                cached_rows=cached.row_count,
            )
            logger.error(report.message)
            return report

        if target.row_count != cached.row_count:
            report = VerificationReport(
                table_name,
                ROW_COUNT_MISMATCH,
                f"Data mismatch for {table_name}: SQL Server rows {target.row_count}, "
                f"Cached rows {cached.row_count}.",
                target_rows=target.row_count,
                cached_rows=cached.row_count,
            )
            logger.info(report.message)
            return report

        for i, (target_row, cached_row) in enumerate(zip(target.rows, cached.rows)):
            for j, column in enumerate(target.columns):
                target_value = canonical_text(target_row[j]).strip()
                cached_value = canonical_text(cached_row[j] if j < len(cached_row) else None).strip()
                if target_value != cached_value:
                    report = VerificationReport(
                        table_name,
                        CELL_MISMATCH,
                        f"Data mismatch in {table_name} at row {i + 1}, column {column}, "
                        f"SQL Server value: '{target_value}', Cached value: '{cached_value}'.",
                        target_rows=target.row_count,
                        cached_rows=cached.row_count,
                        row_index=i + 1,
                        column=column,
                        target_value=target_value,
                        cached_value=cached_value,
                    )
                    logger.info(report.message)
                    return report

        report = VerificationReport(
            table_name,
            CONSISTENT,
            f"Data for {table_name} is consistent between SQL Server and cache.",
            target_rows=target.row_count,
            cached_rows=cached.row_count,
        )
        logger.info(report.message)
        return report

    def verify_all(self) -> Dict[str, Any]:
        """
        Verify every registered table.

        Returns:
            Dictionary with 'reports' (name -> report), 'consistent_count',
            'inconsistent_tables' and 'overall_success'
        """
        if self.registry is None:
            raise ValueError("verify_all requires a TableRegistry")

        reports = {
            identity.sanitized_name: self.verify(identity.sanitized_name)
            for identity in self.registry
        }
        inconsistent = [name for name, report in reports.items() if not report.consistent]

        result = {
            'reports': reports,
            'consistent_count': len(reports) - len(inconsistent),
            'inconsistent_tables': inconsistent,
            'overall_success': not inconsistent,
        }
        logger.info(
            f"Verification complete: {result['consistent_count']}/{len(reports)} tables consistent"
        )
        return result

    def _read_target(self, table_name: str, cached: TableSnapshot) -> TableSnapshot:
        """
        Read the full SQL Server table.

        Columns are selected in the cached column order when the target has
        them all, so cells line up even if the target orders columns differently.
        """
        with self.mssql_hook.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT COLUMN_NAME FROM INFORMATION_SCHEMA.COLUMNS "
                "WHERE TABLE_NAME = ? ORDER BY ORDINAL_POSITION",
                [table_name],
            )
            target_columns = {row[0].lower(): row[0] for row in cursor.fetchall()}

            select_list = '*'
            if cached.columns and all(c.lower() in target_columns for c in cached.columns):
                select_list = ', '.join(
                    quote_identifier(target_columns[c.lower()]) for c in cached.columns
                )

            cursor.execute(f"SELECT {select_list} FROM {quote_identifier(table_name)}")
            return TableSnapshot.from_cursor(cursor)


def generate_verification_report(reports: List[VerificationReport]) -> str:
    """
    Generate a human-readable verification report.

    Args:
        reports: Reports from MigrationValidator.verify

    Returns:
        Formatted report string
    """
    lines = [
        "=" * 60,
        "ACCESS TO SQL SERVER VERIFICATION REPORT",
        "=" * 60,
    ]
    consistent = [r for r in reports if r.consistent]
    lines.append(f"Tables verified: {len(reports)}")
    lines.append(f"Consistent: {len(consistent)}")
    lines.append(f"Inconsistent: {len(reports) - len(consistent)}")
    lines.append("-" * 60)
    for report in reports:
        marker = "OK  " if report.consistent else "FAIL"
        lines.append(f"[{marker}] {report.message}")
    lines.append("=" * 60)
    return "\n".join(lines)
