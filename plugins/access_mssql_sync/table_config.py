"""
Table Configuration Module

This module handles table naming between Access and SQL Server:
- Sanitizing Access table names into SQL Server identifiers
- Filtering out Access system and temporary objects
- The TableRegistry mapping original names to sanitized names

The registry is built once during the full load and consulted by every
downstream stage so sanitized names are never re-derived ad hoc.
"""

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional
import logging
import threading

logger = logging.getLogger(__name__)


# Access internal objects (MSysObjects, MSysACEs, ...) and temp objects (~TMPCLP...)
SYSTEM_TABLE_PREFIXES = ('MSys', '~')


class TableNameCollisionError(ValueError):
    """Two different Access tables sanitize to the same SQL Server name."""

    def __init__(self, original_name: str, existing_name: str, sanitized_name: str):
        self.original_name = original_name
        self.existing_name = existing_name
        self.sanitized_name = sanitized_name
        super().__init__(
            f"Table '{original_name}' sanitizes to '{sanitized_name}', "
            f"which is already used by table '{existing_name}'"
        )


@dataclass(frozen=True)
class TableIdentity:
    """Access table name paired with its SQL Server name."""

    original_name: str
    sanitized_name: str


def sanitize_table_name(table_name: str) -> str:
    """
    Sanitize an Access table name for use in SQL Server and as a cache key.

    Spaces become hyphens and apostrophes are removed. Applying it twice
    gives the same result as applying it once.

    Examples:
        "Order Details" -> "Order-Details"
        "Bob's Orders" -> "Bobs-Orders"

    Args:
        table_name: The original Access table name

    Returns:
        Sanitized table name
    """
    return table_name.replace(' ', '-').replace("'", '')


def is_system_table(table_name: str) -> bool:
    """Return True for Access system or temporary objects."""
    return table_name.startswith(SYSTEM_TABLE_PREFIXES)


class TableRegistry:
    """
    Thread-safe mapping of Access table names to sanitized SQL Server names.

    Registration is idempotent for a given original name. A second original
    name that sanitizes to an already-registered name raises
    TableNameCollisionError instead of silently sharing a cache key.
    """

    def __init__(self):
        self._by_original: Dict[str, str] = {}
        self._by_sanitized: Dict[str, str] = {}
        self._lock = threading.Lock()

    def register(self, original_name: str) -> TableIdentity:
        """
        Register an Access table name.

        Args:
            original_name: Table name as stored in Access

        Returns:
            The TableIdentity for the table

        Raises:
            TableNameCollisionError: If the sanitized name is taken by another table
        """
        sanitized = sanitize_table_name(original_name)
        with self._lock:
            existing = self._by_original.get(original_name)
            if existing is not None:
                return TableIdentity(original_name, existing)

            owner = self._by_sanitized.get(sanitized)
            if owner is not None:
                raise TableNameCollisionError(original_name, owner, sanitized)

            self._by_original[original_name] = sanitized
            self._by_sanitized[sanitized] = original_name

        if sanitized != original_name:
            logger.info(f"Sanitized table name from '{original_name}' to '{sanitized}'.")
        return TableIdentity(original_name, sanitized)

    def check_available(self, original_name: str) -> TableIdentity:
        """
        Compute the identity for a table without registering it.

        Raises:
            TableNameCollisionError: If registering it would collide
        """
        sanitized = sanitize_table_name(original_name)
        with self._lock:
            owner = self._by_sanitized.get(sanitized)
            if owner is not None and owner != original_name:
                raise TableNameCollisionError(original_name, owner, sanitized)
        return TableIdentity(original_name, sanitized)

    def sanitized_name(self, original_name: str) -> Optional[str]:
        with self._lock:
            return self._by_original.get(original_name)

    def original_name(self, sanitized_name: str) -> Optional[str]:
        with self._lock:
            return self._by_sanitized.get(sanitized_name)

    def identities(self) -> List[TableIdentity]:
        """Return a point-in-time copy of all registered identities, in registration order."""
        with self._lock:
            return [TableIdentity(o, s) for o, s in self._by_original.items()]

    def sanitized_names(self) -> List[str]:
        with self._lock:
            return list(self._by_sanitized.keys())

    def clear(self) -> None:
        with self._lock:
            self._by_original.clear()
            self._by_sanitized.clear()

    def __contains__(self, original_name: object) -> bool:
        with self._lock:
            return original_name in self._by_original

    def __iter__(self) -> Iterator[TableIdentity]:
        return iter(self.identities())

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_original)
