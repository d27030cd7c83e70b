"""
Shared fixtures for plugin tests.

FakeDatabase is a small in-memory stand-in for a pyodbc connection target.
It understands only the statements the plugin issues (SELECT, INSERT,
DELETE, CREATE/DROP TABLE and the INFORMATION_SCHEMA lookups) and the ODBC
catalog calls used for Access introspection.
"""

from types import SimpleNamespace
from unittest.mock import patch
import copy
import re

import pyodbc
import pytest

from access_mssql_sync.table_cache import SnapshotCache
from access_mssql_sync.table_config import TableRegistry


ACCESS_CONN = "DRIVER={Microsoft Access Driver (*.mdb, *.accdb)};DBQ=C:\\data\\printers.accdb"
MSSQL_CONN = "DRIVER={ODBC Driver 18 for SQL Server};SERVER=localhost;DATABASE=Printers;Trusted_Connection=yes"

LOCKED_MESSAGE = (
    "[Microsoft][ODBC Microsoft Access Driver] The database has been placed in a state "
    "by user 'Admin' on machine 'PC01' that prevents it from being opened or locked. "
    "(-1102) (SQLDriverConnect)"
)

_IDENTIFIER = re.compile(r'\[((?:[^\]]|\]\])+)\]')


def _identifiers(sql):
    return [name.replace(']]', ']') for name in _IDENTIFIER.findall(sql)]


class FakeDatabase:
    """In-memory tables keyed by name, each with ordered columns and rows."""

    def __init__(self):
        self.tables = {}
        self.types = {}
        self.statements = []
        self.lock_failures = 0
        self.connect_count = 0
        self.insert_error = None
        self.column_errors = {}

    def create(self, name, columns, rows=(), types=None):
        self.tables[name] = {'columns': list(columns), 'rows': [list(row) for row in rows]}
        self.types[name] = types or {}

    def rows(self, name):
        return [tuple(row) for row in self.tables[name]['rows']]

    def connect(self, autocommit=False):
        self.connect_count += 1
        if self.lock_failures:
            self.lock_failures -= 1
            raise pyodbc.Error('HY000', LOCKED_MESSAGE)
        return FakeConnection(self, autocommit)


class FakeConnection:

    def __init__(self, db, autocommit):
        self.db = db
        self.autocommit = autocommit
        self.closed = False
        self._working = None

    def tables(self):
        if self.autocommit:
            return self.db.tables
        if self._working is None:
            self._working = copy.deepcopy(self.db.tables)
        return self._working

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        if self._working is not None:
            self.db.tables = self._working
        self._working = None

    def rollback(self):
        self._working = None

    def close(self):
        self.closed = True


class FakeCursor:

    def __init__(self, conn):
        self.conn = conn
        self.db = conn.db
        self.description = None
        self.rowcount = -1
        self.fast_executemany = False
        self._results = []

    def _table(self, name):
        tables = self.conn.tables()
        if name not in tables:
            raise pyodbc.ProgrammingError('42S02', f"Invalid object name '{name}'. (208)")
        return tables[name]

    def execute(self, sql, params=None):
        self.db.statements.append(sql)
        tables = self.conn.tables()

        if sql.startswith("SELECT COLUMN_NAME FROM INFORMATION_SCHEMA.COLUMNS"):
            table = tables.get(params[0])
            self._set_results(['COLUMN_NAME'], [(c,) for c in (table['columns'] if table else [])])
        elif sql.startswith("SELECT TABLE_NAME FROM INFORMATION_SCHEMA.TABLES"):
            self._set_results(['TABLE_NAME'], [(name,) for name in sorted(tables)])
        elif sql.startswith("CREATE TABLE"):
            names = _identifiers(sql)
            if names[0] in tables:
                raise pyodbc.ProgrammingError(
                    '42S01', f"There is already an object named '{names[0]}' in the database. (2714)"
                )
            tables[names[0]] = {'columns': names[1:], 'rows': []}
        elif sql.startswith("DROP TABLE IF EXISTS"):
            tables.pop(_identifiers(sql)[0], None)
        elif sql.startswith("DELETE FROM"):
            table = self._table(_identifiers(sql)[0])
            self.rowcount = len(table['rows'])
            table['rows'] = []
        elif sql.startswith("SELECT "):
            select_list, _, table_part = sql[len("SELECT "):].partition(" FROM ")
            table = self._table(_identifiers(table_part)[0])
            columns = table['columns'] if select_list == '*' else _identifiers(select_list)
            positions = [table['columns'].index(c) for c in columns]
            self._set_results(columns, [tuple(row[p] for p in positions) for row in table['rows']])
        else:
            raise pyodbc.ProgrammingError('42000', f"Unsupported statement: {sql}")
        return self

    def executemany(self, sql, param_rows):
        self.db.statements.append(sql)
        if self.db.insert_error is not None:
            raise self.db.insert_error
        head, _, _ = sql.partition(" VALUES ")
        names = _identifiers(head)
        table = self._table(names[0])
        for params in param_rows:
            row = [None] * len(table['columns'])
            for column, value in zip(names[1:], params):
                row[table['columns'].index(column)] = value
            table['rows'].append(row)

    def fetchall(self):
        results, self._results = self._results, []
        return results

    def fetchone(self):
        return self._results.pop(0) if self._results else None

    def tables(self, tableType=None):
        return [SimpleNamespace(table_name=name) for name in self.db.tables]

    def columns(self, table=None):
        if table in self.db.column_errors:
            raise self.db.column_errors[table]
        table_def = self.db.tables[table]
        types = self.db.types.get(table, {})
        rows = []
        for position, name in enumerate(table_def['columns'], start=1):
            type_name, size, digits = types.get(name, ('VARCHAR', 255, None))
            rows.append(SimpleNamespace(
                column_name=name,
                type_name=type_name,
                column_size=size,
                decimal_digits=digits,
                ordinal_position=position,
            ))
        return rows

    def _set_results(self, columns, rows):
        self.description = [(name, None, None, None, None, None, True) for name in columns]
        self._results = list(rows)


@pytest.fixture
def access_db():
    """Fake Access database."""
    return FakeDatabase()


@pytest.fixture
def mssql_db():
    """Fake SQL Server database."""
    return FakeDatabase()


@pytest.fixture
def fake_odbc(access_db, mssql_db):
    """Route pyodbc.connect to the fake Access or SQL Server database."""
    def connect(conn_str, autocommit=False):
        db = access_db if 'DBQ=' in conn_str else mssql_db
        return db.connect(autocommit=autocommit)

    with patch('access_mssql_sync.odbc_helper.pyodbc.connect', side_effect=connect) as mock_connect:
        yield mock_connect


@pytest.fixture
def cache():
    return SnapshotCache()


@pytest.fixture
def registry():
    return TableRegistry()


@pytest.fixture
def printers_access(access_db):
    """Access database with a tblPrinters table, a spaced table and a system table."""
    access_db.create(
        'tblPrinters',
        ['ID', 'Name', 'Location'],
        [(1, 'HP', 'Floor 1'), (2, 'Canon', 'Floor 2'), (3, 'Epson', None)],
        types={'ID': ('COUNTER', 10, 0), 'Name': ('VARCHAR', 50, None), 'Location': ('VARCHAR', 100, None)},
    )
    access_db.create(
        'Order Details',
        ['OrderID', 'Quantity'],
        [(10, 2), (11, 5)],
        types={'OrderID': ('INTEGER', 10, 0), 'Quantity': ('SMALLINT', 5, 0)},
    )
    access_db.create('MSysObjects', ['Id', 'Name'], [(1, 'x')])
    return access_db


@pytest.fixture
def access_conn():
    return ACCESS_CONN


@pytest.fixture
def mssql_conn():
    return MSSQL_CONN
