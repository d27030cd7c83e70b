"""
Table Snapshot Module

In-memory copies of table contents and the rule for deciding whether two
copies of the same table still match.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence, Tuple
import logging

from access_mssql_sync.cell_values import canonical_text, values_equal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColumnSchema:
    """Column metadata read from the Access catalog."""

    name: str
    source_type: str
    max_length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None


@dataclass(frozen=True)
class TableSnapshot:
    """
    Full contents of one table at a point in time.

    Columns and rows are tuples, so a snapshot handed to the cache cannot be
    modified by the code that loaded it.
    """

    columns: Tuple[str, ...]
    rows: Tuple[Tuple[Any, ...], ...] = field(default_factory=tuple)

    @classmethod
    def from_rows(cls, columns: Iterable[str], rows: Iterable[Sequence[Any]]) -> 'TableSnapshot':
        return cls(tuple(columns), tuple(tuple(row) for row in rows))

    @classmethod
    def from_cursor(cls, cursor) -> 'TableSnapshot':
        """Build a snapshot from an executed pyodbc cursor."""
        columns = [description[0] for description in cursor.description]
        return cls.from_rows(columns, cursor.fetchall())

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def is_empty(self) -> bool:
        return not self.rows

    def to_tsv(self, rows: Optional[Iterable[Sequence[Any]]] = None) -> str:
        """
        Render rows as tab-separated text with a header row of column names.

        Args:
            rows: Rows to render (defaults to every row of the snapshot)

        Returns:
            One line per row, values in canonical text
        """
        lines = ['\t'.join(self.columns)]
        for row in (self.rows if rows is None else rows):
            lines.append('\t'.join(canonical_text(value) for value in row))
        return '\n'.join(lines)


@dataclass(frozen=True)
class MatchResult:
    """
    Outcome of comparing two snapshots.

    Truthy when the snapshots match. row_index is 1-based.
    """

    matched: bool
    message: str = ''
    row_index: Optional[int] = None
    column: Optional[str] = None
    left_value: Any = None
    right_value: Any = None

    def __bool__(self) -> bool:
        return self.matched


def tables_match(left: TableSnapshot, right: TableSnapshot) -> MatchResult:
    """
    Compare two snapshots of the same table cell by cell.

    Snapshots match when they have the same columns, the same number of rows,
    and equal values at every (row, column) position. Comparison stops at the
    first difference.

    Args:
        left: Baseline snapshot
        right: Recently loaded snapshot

    Returns:
        MatchResult describing the first difference, if any
    """
    if left.row_count != right.row_count:
        message = f"Mismatch in row count: {left.row_count} vs {right.row_count}"
        logger.info(message)
        return MatchResult(False, message)

    if list(left.columns) != list(right.columns):
        message = f"Mismatch in columns: {list(left.columns)} vs {list(right.columns)}"
        logger.info(message)
        return MatchResult(False, message)

    for i, (left_row, right_row) in enumerate(zip(left.rows, right.rows)):
        for j, column in enumerate(left.columns):
            if not values_equal(left_row[j], right_row[j]):
                message = (
                    f"Data mismatch at row {i + 1}, column {column}: "
                    f"'{canonical_text(left_row[j])}' vs '{canonical_text(right_row[j])}'"
                )
                logger.info(message)
                return MatchResult(False, message, i + 1, column, left_row[j], right_row[j])

    return MatchResult(True)
