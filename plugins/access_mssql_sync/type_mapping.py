"""
Access to SQL Server Type Mapping Module

This module maps Microsoft Access column types to SQL Server column types.

Access reports types under several names depending on how it is read: ODBC
catalog names (COUNTER, VARCHAR, LONGCHAR), OLE DB tags (DBTYPE_I4,
DBTYPE_WSTR) and table designer names (Long Integer, Text, Memo). All of them
are accepted.

When metadata is missing or unrecognised the mapper falls back to
NVARCHAR(MAX), which always fits the data at load time.
"""

from typing import Any, Dict, List, Optional
import logging

from access_mssql_sync.snapshot import ColumnSchema

logger = logging.getLogger(__name__)


FALLBACK_TYPE = "NVARCHAR(MAX)"

# SQL Server limit for NVARCHAR(n)
MAX_NVARCHAR_LENGTH = 4000

# Complete mapping of Access data types to SQL Server (keys are upper case)
TYPE_MAPPING = {
    # Integer family
    "COUNTER": "INT",
    "AUTOINCREMENT": "INT",
    "AUTONUMBER": "INT",
    "INTEGER": "INT",
    "LONG": "INT",
    "LONG INTEGER": "INT",
    "SMALLINT": "INT",
    "SHORT": "INT",
    "BYTE": "INT",
    "TINYINT": "INT",
    "DBTYPE_I1": "INT",
    "DBTYPE_I2": "INT",
    "DBTYPE_I4": "INT",
    "DBTYPE_UI1": "INT",

    # Approximate numeric
    "DOUBLE": "FLOAT",
    "FLOAT": "FLOAT",
    "REAL": "FLOAT",
    "SINGLE": "FLOAT",
    "DBTYPE_R4": "FLOAT",
    "DBTYPE_R8": "FLOAT",

    # Exact numeric
    "CURRENCY": "MONEY",
    "MONEY": "MONEY",
    "DBTYPE_CY": "MONEY",
    "DECIMAL": "DECIMAL({precision},{scale})",
    "NUMERIC": "DECIMAL({precision},{scale})",
    "DBTYPE_DECIMAL": "DECIMAL({precision},{scale})",
    "DBTYPE_NUMERIC": "DECIMAL({precision},{scale})",

    # Boolean
    "BIT": "BIT",
    "YESNO": "BIT",
    "YES/NO": "BIT",
    "BOOLEAN": "BIT",
    "DBTYPE_BOOL": "BIT",

    # Globally unique identifier
    "GUID": "UNIQUEIDENTIFIER",
    "REPLICATION ID": "UNIQUEIDENTIFIER",
    "UNIQUEIDENTIFIER": "UNIQUEIDENTIFIER",
    "DBTYPE_GUID": "UNIQUEIDENTIFIER",

    # Binary
    "BINARY": "VARBINARY(MAX)",
    "VARBINARY": "VARBINARY(MAX)",
    "LONGBINARY": "VARBINARY(MAX)",
    "OLE OBJECT": "VARBINARY(MAX)",
    "IMAGE": "VARBINARY(MAX)",
    "DBTYPE_BYTES": "VARBINARY(MAX)",

    # Date and time
    "DATETIME": "DATETIME2",
    "DATE/TIME": "DATETIME2",
    "DATE": "DATETIME2",
    "DBTYPE_DATE": "DATETIME2",
    "DBTYPE_DBTIMESTAMP": "DATETIME2",

    # Fixed-length text
    "TEXT": "NVARCHAR({length})",
    "SHORT TEXT": "NVARCHAR({length})",
    "VARCHAR": "NVARCHAR({length})",
    "CHAR": "NVARCHAR({length})",
    "WCHAR": "NVARCHAR({length})",
    "WVARCHAR": "NVARCHAR({length})",
    "DBTYPE_STR": "NVARCHAR({length})",
    "DBTYPE_WSTR": "NVARCHAR({length})",

    # Long text
    "MEMO": "NVARCHAR(MAX)",
    "LONG TEXT": "NVARCHAR(MAX)",
    "LONGCHAR": "NVARCHAR(MAX)",
    "HYPERLINK": "NVARCHAR(MAX)",
}


def map_type(
    source_type: Optional[str],
    max_length: Optional[int] = None,
    precision: Optional[int] = None,
    scale: Optional[int] = None,
) -> str:
    """
    Map an Access data type to its SQL Server equivalent.

    Never raises: empty or unknown types map to NVARCHAR(MAX).

    Args:
        source_type: The Access data type name
        max_length: Maximum length for text types
        precision: Precision for decimal types
        scale: Scale for decimal types

    Returns:
        The SQL Server column type
    """
    access_type = (source_type or "").upper().strip()

    if access_type not in TYPE_MAPPING:
        logger.warning(f"Unknown Access type '{source_type}', using {FALLBACK_TYPE} as fallback")
        return FALLBACK_TYPE

    sql_type = TYPE_MAPPING[access_type]

    if "{length}" in sql_type:
        if _positive_int(max_length) and max_length <= MAX_NVARCHAR_LENGTH:
            return sql_type.replace("{length}", str(max_length))
        # Unknown or oversized lengths must never truncate at load time
        return FALLBACK_TYPE

    if "{precision}" in sql_type:
        if not _positive_int(precision):
            return FALLBACK_TYPE
        scale = scale if isinstance(scale, int) and 0 <= scale <= precision else 0
        return sql_type.replace("{precision}", str(precision)).replace("{scale}", str(scale))

    return sql_type


def _positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def map_column(column: ColumnSchema) -> Dict[str, Any]:
    """
    Map a column definition from Access to SQL Server.

    Args:
        column: Column metadata from the Access catalog

    Returns:
        Dictionary with column_name, source_type and data_type
    """
    return {
        'column_name': column.name,
        'source_type': column.source_type,
        'data_type': map_type(column.source_type, column.max_length, column.precision, column.scale),
    }


def is_known_type(source_type: str) -> bool:
    """
    Check if an Access type has an explicit mapping.

    Args:
        source_type: The Access data type to check

    Returns:
        True if the type has a mapping, False if it would use the fallback
    """
    return (source_type or "").upper().strip() in TYPE_MAPPING


def get_supported_types() -> List[str]:
    """
    Get a list of all supported Access data type names.

    Returns:
        List of supported type names (upper case)
    """
    return list(TYPE_MAPPING.keys())
