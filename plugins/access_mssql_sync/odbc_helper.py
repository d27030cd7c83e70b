"""
ODBC Connection Helper

This module provides a single pyodbc-based helper for both ends of the sync:
the Access source (Microsoft Access ODBC driver) and the SQL Server target
(ODBC Driver 18 for SQL Server).

Connection descriptors are either Airflow connection IDs, resolved through
BaseHook, or raw ODBC connection strings which are used verbatim.

It also classifies driver errors so callers can retry lock contention on the
Access file without matching on message text at every call site.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from contextlib import contextmanager
from airflow.hooks.base import BaseHook
import logging
import os
import re
import pyodbc

logger = logging.getLogger(__name__)


DEFAULT_ACCESS_DRIVER = '{Microsoft Access Driver (*.mdb, *.accdb)}'
DEFAULT_MSSQL_DRIVER = '{ODBC Driver 18 for SQL Server}'

ACCESS_FILE_EXTENSIONS = ('.mdb', '.accdb')

# Native error codes reported by the Access ODBC driver for locked files
ACCESS_LOCK_NATIVE_CODES = {-1032, -1033, -1034, -1102, -1104}

# Jet/ACE error numbers surfaced by OLE DB style messages
ACCESS_LOCK_JET_CODES = {3006, 3008, 3045, 3050, 3734}

# Fallback only, used when the driver reports no recognised code
ACCESS_LOCK_PHRASES = (
    'file already in use',
    'exclusively locked',
    'could not lock',
    'placed in a state by user',
    'currently locked',
)

_NATIVE_CODE_PATTERN = re.compile(r'\((-\d+)\)')
_JET_CODE_PATTERN = re.compile(r'\b(3\d{3})\b')


class ErrorKind(Enum):
    """Classification of a driver failure for retry decisions."""

    TRANSIENT = 'transient'
    PERMANENT = 'permanent'


def classify_error(error: BaseException) -> ErrorKind:
    """
    Classify a database error as transient lock contention or permanent.

    The Access driver reports an exclusive lock with a native error code in
    parentheses, e.g. "... file already in use. (-1032) (SQLDriverConnect)".
    Codes are checked first; known lock phrases are the fallback for drivers
    that omit them.

    Args:
        error: Exception raised by pyodbc (or anything else)

    Returns:
        ErrorKind.TRANSIENT for lock contention, ErrorKind.PERMANENT otherwise
    """
    if not isinstance(error, pyodbc.Error):
        return ErrorKind.PERMANENT

    message = ' '.join(str(arg) for arg in error.args)

    native_codes = {int(code) for code in _NATIVE_CODE_PATTERN.findall(message)}
    if native_codes & ACCESS_LOCK_NATIVE_CODES:
        return ErrorKind.TRANSIENT

    jet_codes = {int(code) for code in _JET_CODE_PATTERN.findall(message)}
    if jet_codes & ACCESS_LOCK_JET_CODES:
        return ErrorKind.TRANSIENT

    lowered = message.lower()
    if any(phrase in lowered for phrase in ACCESS_LOCK_PHRASES):
        return ErrorKind.TRANSIENT

    return ErrorKind.PERMANENT


def is_transient_error(error: BaseException) -> bool:
    """Return True if the error is lock contention worth retrying."""
    return classify_error(error) is ErrorKind.TRANSIENT


def is_odbc_connection_string(descriptor: str) -> bool:
    """Check whether a descriptor is a raw ODBC connection string."""
    upper = descriptor.upper()
    return 'DRIVER=' in upper or 'DSN=' in upper


class OdbcConnectionHelper:
    """
    Helper class for ODBC connections that mimics the Airflow DbApiHook interface.

    Provides get_records and run, plus catalog access
    (get_tables, get_columns) used for Access schema introspection.
    Every call opens its own connection and closes it afterwards.
    """

    def __init__(self, odbc_conn_id: str):
        """
        Initialize the ODBC connection helper.

        Args:
            odbc_conn_id: Airflow connection ID, or a raw ODBC connection string
        """
        self.conn_id = odbc_conn_id
        self._conn_config: Optional[Dict[str, str]] = None

    def _get_connection_config(self) -> Dict[str, str]:
        """
        Get connection configuration from the Airflow connection.

        Connections with conn_type 'access', or whose host/schema/extra points
        at an .mdb/.accdb file, are treated as Access. Everything else is
        treated as SQL Server.

        Returns:
            Dictionary with ODBC connection parameters
        """
        if self._conn_config is None:
            conn = BaseHook.get_connection(self.conn_id)
            extra = conn.extra_dejson if conn.extra else {}

            access_path = extra.get('dbq') or self._find_access_path(conn)
            if conn.conn_type == 'access' or access_path:
                self._conn_config = {
                    'DRIVER': os.environ.get('ACCESS_ODBC_DRIVER', DEFAULT_ACCESS_DRIVER),
                    'DBQ': access_path or conn.host,
                }
                if conn.password:
                    self._conn_config['PWD'] = conn.password
                return self._conn_config

            port = conn.port or 1433
            server = f"{conn.host},{port}" if port != 1433 else conn.host

            self._conn_config = {
                'DRIVER': os.environ.get('MSSQL_ODBC_DRIVER', DEFAULT_MSSQL_DRIVER),
                'SERVER': server,
                'DATABASE': conn.schema,
                'TrustServerCertificate': 'yes',
            }

            if conn.login:
                # SQL Server Authentication
                self._conn_config['UID'] = conn.login
                self._conn_config['PWD'] = conn.password or ''
                self._conn_config['Trusted_Connection'] = 'no'
            else:
                # Windows Authentication
                self._conn_config['Trusted_Connection'] = 'yes'

        return self._conn_config

    @staticmethod
    def _find_access_path(conn) -> Optional[str]:
        for value in (conn.host, conn.schema):
            if value and value.lower().endswith(ACCESS_FILE_EXTENSIONS):
                return value
        return None

    def _build_connection_string(self) -> str:
        """
        Build ODBC connection string from configuration.

        Returns:
            ODBC connection string
        """
        if is_odbc_connection_string(self.conn_id):
            return self.conn_id
        config = self._get_connection_config()
        return ';'.join([f"{k}={v}" for k, v in config.items() if v])

    def get_conn(self, autocommit: bool = False) -> pyodbc.Connection:
        """
        Open a new pyodbc connection to the database.

        Args:
            autocommit: Whether the connection commits every statement

        Returns:
            pyodbc Connection object
        """
        conn_str = self._build_connection_string()
        return pyodbc.connect(conn_str, autocommit=autocommit)

    def release_conn(self, conn: Optional[pyodbc.Connection]) -> None:
        """Close a connection, ignoring None."""
        if conn is None:
            return
        conn.close()

    @contextmanager
    def connection(self, autocommit: bool = False):
        """Context manager yielding a connection that is closed on exit."""
        conn = self.get_conn(autocommit=autocommit)
        try:
            yield conn
        finally:
            self.release_conn(conn)

    def get_records(
        self,
        sql: str,
        parameters: Optional[List[Any]] = None
    ) -> List[Tuple[Any, ...]]:
        """
        Execute a query and return all rows as a list of tuples.

        Args:
            sql: SQL query to execute
            parameters: Optional list of parameters for the query

        Returns:
            List of tuples, one per row
        """
        conn = None
        try:
            conn = self.get_conn()
            cursor = conn.cursor()

            if parameters:
                cursor.execute(sql, parameters)
            else:
                cursor.execute(sql)

            rows = cursor.fetchall()
            return rows
        except Exception as e:
            logger.error(f"Error executing query: {e}")
            logger.error(f"Query: {sql}")
            if parameters:
                logger.error(f"Parameters: {parameters}")
            raise
        finally:
            self.release_conn(conn)

    def run(
        self,
        sql: str,
        parameters: Optional[List[Any]] = None,
        autocommit: bool = False
    ) -> None:
        """
        Execute a SQL statement (typically DDL or DML).

        Args:
            sql: SQL statement to execute
            parameters: Optional list of parameters for the query
            autocommit: Whether to commit automatically
        """
        conn = None
        try:
            conn = self.get_conn(autocommit=autocommit)
            cursor = conn.cursor()

            if parameters:
                cursor.execute(sql, parameters)
            else:
                cursor.execute(sql)

            if not autocommit:
                conn.commit()
        except Exception as e:
            logger.error(f"Error executing statement: {e}")
            logger.error(f"SQL: {sql}")
            if parameters:
                logger.error(f"Parameters: {parameters}")
            if conn and not autocommit:
                conn.rollback()
            raise
        finally:
            self.release_conn(conn)

    def get_tables(self, table_type: str = 'TABLE') -> List[str]:
        """
        List table names from the ODBC catalog.

        Args:
            table_type: ODBC table type filter ('TABLE', 'SYSTEM TABLE', 'VIEW')

        Returns:
            Table names in catalog order
        """
        with self.connection() as conn:
            cursor = conn.cursor()
            return [row.table_name for row in cursor.tables(tableType=table_type)]

    def get_columns(self, table_name: str) -> List[Any]:
        """
        Read column metadata for a table from the ODBC catalog.

        Args:
            table_name: Table name as stored in the database

        Returns:
            pyodbc catalog rows (column_name, type_name, column_size, ...)
        """
        with self.connection() as conn:
            cursor = conn.cursor()
            return list(cursor.columns(table=table_name))

    def check_connection(self) -> bool:
        """
        Open and close a connection, logging the outcome.

        Returns:
            True if the connection could be opened
        """
        try:
            with self.connection():
                pass
        except pyodbc.Error as e:
            logger.error(f"Error connecting to {self.conn_id}: {e}")
            return False
        logger.info(f"Connection to {self.conn_id} successful.")
        return True


SUPPORTED_DB_TYPES = ('access', 'mssql')


def check_connection(descriptor: str, db_type: str) -> bool:
    """
    Test a connection to a source or target database.

    Args:
        descriptor: Airflow connection ID or raw ODBC connection string
        db_type: 'access' or 'mssql'

    Returns:
        True if the connection succeeded, False on failure or unsupported type
    """
    if db_type not in SUPPORTED_DB_TYPES:
        logger.error(f"Unsupported database type: {db_type}")
        return False

    logger.info(f"Connecting to {db_type} database...")
    return OdbcConnectionHelper(descriptor).check_connection()
