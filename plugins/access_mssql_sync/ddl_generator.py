"""
SQL Server DDL Generation Module

This module generates and executes SQL Server DDL from Access column metadata.
Translation is schema-only and best effort: no primary keys, constraints or
indexes are created. Each table is created independently so one failure does
not stop the rest of the migration.
"""

from typing import Any, Dict, List, Optional, Sequence
import logging
import pyodbc

from access_mssql_sync.odbc_helper import OdbcConnectionHelper
from access_mssql_sync.snapshot import ColumnSchema
from access_mssql_sync.table_config import TableIdentity, TableNameCollisionError, TableRegistry
from access_mssql_sync.type_mapping import map_column

logger = logging.getLogger(__name__)


def quote_identifier(identifier: str) -> str:
    """
    Quote a SQL Server identifier with brackets.

    Embedded closing brackets are doubled so the identifier cannot break out
    of the quoting.

    Args:
        identifier: Identifier to quote

    Returns:
        Bracket-quoted identifier
    """
    return f"[{identifier.replace(']', ']]')}]"


class DDLGenerator:
    """Generate and execute SQL Server DDL statements from Access metadata."""

    def __init__(self, mssql_conn_id: str):
        """
        Initialize the DDL generator.

        Args:
            mssql_conn_id: Airflow connection ID or ODBC connection string for SQL Server
        """
        self.mssql_hook = OdbcConnectionHelper(odbc_conn_id=mssql_conn_id)

    def generate_create_table(self, table_name: str, columns: Sequence[ColumnSchema]) -> str:
        """
        Generate CREATE TABLE statement for SQL Server.

        Column order follows the Access metadata order.

        Args:
            table_name: Sanitized table name
            columns: Column metadata from Access

        Returns:
            CREATE TABLE DDL statement

        Raises:
            ValueError: If there are no columns
        """
        if not columns:
            raise ValueError(f"Cannot create table '{table_name}' without columns")

        column_definitions = []
        for column in columns:
            mapped = map_column(column)
            column_definitions.append(f"{quote_identifier(mapped['column_name'])} {mapped['data_type']}")

        return f"CREATE TABLE {quote_identifier(table_name)} ({', '.join(column_definitions)})"

    def generate_drop_table(self, table_name: str) -> str:
        """
        Generate DROP TABLE statement.

        Args:
            table_name: Table name to drop

        Returns:
            DROP TABLE DDL statement
        """
        return f"DROP TABLE IF EXISTS {quote_identifier(table_name)}"

    def create_table(self, identity: TableIdentity, columns: Sequence[ColumnSchema]) -> bool:
        """
        Create one table in SQL Server.

        Failures (table already exists, invalid identifier, no columns) are
        logged and reported through the return value.

        Args:
            identity: Table identity (the sanitized name is used in SQL Server)
            columns: Column metadata from Access

        Returns:
            True if the table was created
        """
        table_name = identity.sanitized_name
        try:
            ddl = self.generate_create_table(table_name, columns)
            logger.debug(f"Executing DDL: {ddl}")
            self.mssql_hook.run(ddl, autocommit=True)
        except (pyodbc.Error, ValueError) as e:
            logger.error(f"Failed to create table '{table_name}': {e}")
            return False

        logger.info(f"Table '{table_name}' created in SQL Server.")
        return True

    def get_user_tables(self) -> List[str]:
        """List base tables in the target database."""
        rows = self.mssql_hook.get_records(
            "SELECT TABLE_NAME FROM INFORMATION_SCHEMA.TABLES "
            "WHERE TABLE_TYPE = 'BASE TABLE' ORDER BY TABLE_NAME"
        )
        return [row[0] for row in rows]

    def drop_all_tables(self) -> Dict[str, Any]:
        """
        Drop every user table from the SQL Server database.

        Returns:
            Dictionary with 'dropped' and 'failed' table lists
        """
        result: Dict[str, Any] = {'dropped': [], 'failed': {}}

        for table_name in self.get_user_tables():
            try:
                self.mssql_hook.run(self.generate_drop_table(table_name), autocommit=True)
                result['dropped'].append(table_name)
            except pyodbc.Error as e:
                logger.error(f"Error dropping table {table_name}: {e}")
                result['failed'][table_name] = str(e)

        logger.info(f"Dropped {len(result['dropped'])} tables from SQL Server")
        return result


def migrate_schema(
    extractor, generator: DDLGenerator, registry: Optional[TableRegistry] = None
) -> Dict[str, Any]:
    """
    Create a SQL Server table for every Access user table.

    Each table is isolated: a name collision, metadata or DDL failure is
    logged and the remaining tables are still created. A table whose name
    sanitizes to one already claimed is skipped before any DDL runs.

    Args:
        extractor: SchemaExtractor for the Access database
        generator: DDLGenerator for the SQL Server database
        registry: Registry that claims sanitized names; a fresh one if omitted

    Returns:
        Dictionary with 'created' (sanitized names) and 'failed' (name -> reason).
        Collisions are keyed by the original Access name.
    """
    if registry is None:
        registry = TableRegistry()
    result: Dict[str, Any] = {'created': [], 'failed': {}}

    for identity in extractor.list_tables():
        try:
            registry.check_available(identity.original_name)
        except TableNameCollisionError as e:
            logger.error(f"Skipping table: {e}")
            result['failed'][identity.original_name] = str(e)
            continue

        try:
            columns = extractor.describe_columns(identity.original_name)
        except pyodbc.Error as e:
            logger.error(f"Failed to read columns for '{identity.original_name}': {e}")
            result['failed'][identity.sanitized_name] = str(e)
            continue

        registry.register(identity.original_name)
        if generator.create_table(identity, columns):
            result['created'].append(identity.sanitized_name)
        else:
            result['failed'][identity.sanitized_name] = 'CREATE TABLE failed'

    logger.info(
        f"Database migration complete: {len(result['created'])} tables created, "
        f"{len(result['failed'])} failed"
    )
    return result
