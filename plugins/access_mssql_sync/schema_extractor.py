"""
Access Schema Extraction Module

This module reads table and column metadata from an Access database through
the ODBC catalog functions (SQLTables / SQLColumns).
"""

from typing import Any, List, Optional
import logging

from access_mssql_sync.odbc_helper import OdbcConnectionHelper
from access_mssql_sync.snapshot import ColumnSchema
from access_mssql_sync.table_config import TableIdentity, is_system_table, sanitize_table_name

logger = logging.getLogger(__name__)


class SchemaExtractor:
    """Extract schema information from Access databases."""

    def __init__(self, access_conn_id: str):
        """
        Initialize the schema extractor.

        Args:
            access_conn_id: Airflow connection ID or ODBC connection string for Access
        """
        self.access_hook = OdbcConnectionHelper(odbc_conn_id=access_conn_id)

    def list_tables(self) -> List[TableIdentity]:
        """
        Get all user tables from the Access database.

        System objects (MSys*) and temporary objects (~*) are excluded.

        Returns:
            TableIdentity for each user table, in catalog order
        """
        names = self.access_hook.get_tables(table_type='TABLE')
        tables = []
        for name in names:
            if is_system_table(name):
                logger.debug(f"Skipping system table {name}")
                continue
            tables.append(TableIdentity(name, sanitize_table_name(name)))

        logger.info(f"Found {len(tables)} user tables in Access database")
        return tables

    def describe_columns(self, table_name: str) -> List[ColumnSchema]:
        """
        Get column metadata for a table.

        Args:
            table_name: Original Access table name

        Returns:
            ColumnSchema list ordered by ordinal position
        """
        rows = self.access_hook.get_columns(table_name)
        rows = sorted(rows, key=lambda r: getattr(r, 'ordinal_position', 0) or 0)

        columns = [
            ColumnSchema(
                name=row.column_name,
                source_type=row.type_name,
                max_length=_as_int(row.column_size),
                precision=_as_int(row.column_size),
                scale=_as_int(row.decimal_digits),
            )
            for row in rows
        ]

        logger.info(f"Read {len(columns)} columns for table {table_name}")
        return columns


def _as_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
