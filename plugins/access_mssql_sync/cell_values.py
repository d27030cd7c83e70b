"""
Cell Value Module

Cells read through pyodbc arrive as plain Python scalars. This module tags
them with a CellKind and defines the two comparisons the sync relies on:

- values_equal: typed equality, used when comparing snapshots for changes
- canonical_text: text rendering, used by the consistency check and by
  diagnostic row dumps
"""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any
import math
import uuid


class CellKind(Enum):
    """Kind of a cell value."""

    NULL = 'null'
    BOOLEAN = 'boolean'
    INTEGER = 'integer'
    FLOAT = 'float'
    DECIMAL = 'decimal'
    TEXT = 'text'
    BYTES = 'bytes'
    DATETIME = 'datetime'
    GUID = 'guid'


def cell_kind(value: Any) -> CellKind:
    """
    Classify a cell value.

    bool is checked before int since it is an int subclass. Values of any
    other type are treated as TEXT.
    """
    if value is None:
        return CellKind.NULL
    if isinstance(value, bool):
        return CellKind.BOOLEAN
    if isinstance(value, int):
        return CellKind.INTEGER
    if isinstance(value, float):
        return CellKind.FLOAT
    if isinstance(value, Decimal):
        return CellKind.DECIMAL
    if isinstance(value, (bytes, bytearray, memoryview)):
        return CellKind.BYTES
    if isinstance(value, (datetime, date, time)):
        return CellKind.DATETIME
    if isinstance(value, uuid.UUID):
        return CellKind.GUID
    return CellKind.TEXT


def values_equal(left: Any, right: Any) -> bool:
    """
    Compare two cell values for change detection.

    Values of different kinds are never equal. NaN equals NaN so that a
    snapshot always matches itself.
    """
    kind = cell_kind(left)
    if kind is not cell_kind(right):
        return False

    if kind is CellKind.NULL:
        return True
    if kind is CellKind.FLOAT:
        if math.isnan(left) and math.isnan(right):
            return True
        return left == right
    if kind is CellKind.BYTES:
        return bytes(left) == bytes(right)
    if kind is CellKind.DECIMAL:
        if left.is_nan() and right.is_nan():
            return True
        return left == right
    if kind is CellKind.TEXT:
        return str(left) == str(right)
    return left == right


def canonical_text(value: Any) -> str:
    """
    Render a cell value as text for cross-engine comparison and row dumps.

    NULL renders as an empty string. Decimals drop trailing zeros so that
    Access CURRENCY and SQL Server MONEY values compare equal. Date/times use
    ISO format with a space separator.
    """
    kind = cell_kind(value)

    if kind is CellKind.NULL:
        return ''
    if kind is CellKind.BOOLEAN:
        return 'True' if value else 'False'
    if kind is CellKind.FLOAT:
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if kind is CellKind.DECIMAL:
        if not value.is_finite():
            return str(value)
        normalized = value.normalize()
        if normalized == 0:
            return '0'
        return format(normalized, 'f')
    if kind is CellKind.BYTES:
        return '0x' + bytes(value).hex().upper()
    if kind is CellKind.DATETIME:
        if isinstance(value, datetime):
            return value.isoformat(sep=' ')
        return value.isoformat()
    if kind is CellKind.GUID:
        return str(value).upper()
    return str(value)
