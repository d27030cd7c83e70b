"""
Tests for Table Snapshot and Cell Value Modules

These tests validate cell equality, canonical text rendering and
snapshot matching.
"""

from datetime import date, datetime
from decimal import Decimal
import uuid

import pytest
from access_mssql_sync.cell_values import CellKind, canonical_text, cell_kind, values_equal
from access_mssql_sync.snapshot import TableSnapshot, tables_match


class TestCellKind:

    @pytest.mark.parametrize("value,kind", [
        (None, CellKind.NULL),
        (True, CellKind.BOOLEAN),
        (1, CellKind.INTEGER),
        (1.5, CellKind.FLOAT),
        (Decimal("1.50"), CellKind.DECIMAL),
        ("abc", CellKind.TEXT),
        (b"\x00", CellKind.BYTES),
        (datetime(2024, 1, 1), CellKind.DATETIME),
        (uuid.UUID(int=1), CellKind.GUID),
    ])
    def test_cell_kind(self, value, kind):
        assert cell_kind(value) is kind


class TestValuesEqual:

    def test_nulls_equal(self):
        assert values_equal(None, None)

    def test_null_differs_from_empty_string(self):
        assert not values_equal(None, "")

    def test_bool_differs_from_int(self):
        assert not values_equal(True, 1)

    def test_int_differs_from_float(self):
        assert not values_equal(1, 1.0)

    def test_nan_equals_nan(self):
        assert values_equal(float("nan"), float("nan"))
        assert values_equal(Decimal("NaN"), Decimal("NaN"))

    def test_bytes_and_bytearray(self):
        assert values_equal(b"\x01\x02", bytearray(b"\x01\x02"))

    def test_text(self):
        assert values_equal("Canon", "Canon")
        assert not values_equal("Canon", "Canon2")


class TestCanonicalText:

    @pytest.mark.parametrize("value,expected", [
        (None, ""),
        (True, "True"),
        (False, "False"),
        (42, "42"),
        (3.0, "3"),
        (2.5, "2.5"),
        (Decimal("12.3400"), "12.34"),
        (Decimal("0.0000"), "0"),
        (Decimal("100"), "100"),
        (b"\xde\xad", "0xDEAD"),
        (datetime(2024, 3, 1, 8, 30), "2024-03-01 08:30:00"),
        (date(2024, 3, 1), "2024-03-01"),
        ("Floor 1", "Floor 1"),
    ])
    def test_canonical_text(self, value, expected):
        assert canonical_text(value) == expected

    def test_guid_upper_case(self):
        value = uuid.UUID("6f9619ff-8b86-d011-b42d-00c04fc964ff")
        assert canonical_text(value) == "6F9619FF-8B86-D011-B42D-00C04FC964FF"

    def test_currency_and_money_render_the_same(self):
        """Access CURRENCY and SQL Server MONEY differ only in scale."""
        assert canonical_text(Decimal("19.99")) == canonical_text(Decimal("19.9900"))


class TestTableSnapshot:

    def test_from_rows_freezes_data(self):
        rows = [[1, "HP"]]
        snapshot = TableSnapshot.from_rows(["ID", "Name"], rows)
        rows[0][1] = "changed"

        assert snapshot.rows == ((1, "HP"),)
        assert snapshot.columns == ("ID", "Name")

    def test_from_cursor(self):
        class Cursor:
            description = [("ID",), ("Name",)]

            def fetchall(self):
                return [(1, "HP"), (2, "Canon")]

        snapshot = TableSnapshot.from_cursor(Cursor())

        assert snapshot.columns == ("ID", "Name")
        assert snapshot.row_count == 2

    def test_empty(self):
        snapshot = TableSnapshot.from_rows(["ID"], [])
        assert snapshot.is_empty
        assert snapshot.row_count == 0

    def test_to_tsv(self):
        snapshot = TableSnapshot.from_rows(["ID", "Name", "Location"], [(1, "HP", None)])
        assert snapshot.to_tsv() == "ID\tName\tLocation\n1\tHP\t"


class TestTablesMatch:

    @pytest.fixture
    def printers(self):
        return TableSnapshot.from_rows(
            ["ID", "Name"], [(1, "HP"), (2, "Canon"), (3, "Epson")]
        )

    def test_snapshot_matches_itself(self, printers):
        assert tables_match(printers, printers)

    def test_snapshot_with_nan_matches_itself(self):
        snapshot = TableSnapshot.from_rows(["Value"], [(float("nan"),)])
        assert tables_match(snapshot, snapshot)

    def test_empty_snapshots_match(self):
        empty = TableSnapshot.from_rows(["ID"], [])
        assert tables_match(empty, empty)

    def test_row_count_mismatch(self, printers):
        shorter = TableSnapshot.from_rows(["ID", "Name"], [(1, "HP"), (2, "Canon")])

        result = tables_match(printers, shorter)

        assert not result
        assert result.message == "Mismatch in row count: 3 vs 2"

    def test_cell_mismatch_reports_first_difference(self, printers):
        changed = TableSnapshot.from_rows(
            ["ID", "Name"], [(1, "HP"), (2, "Canon2"), (3, "Brother")]
        )

        result = tables_match(printers, changed)

        assert not result
        assert result.row_index == 2
        assert result.column == "Name"
        assert result.left_value == "Canon"
        assert result.right_value == "Canon2"

    def test_null_versus_empty_string_is_a_change(self):
        left = TableSnapshot.from_rows(["Location"], [(None,)])
        right = TableSnapshot.from_rows(["Location"], [("",)])
        assert not tables_match(left, right)

    def test_column_mismatch(self, printers):
        renamed = TableSnapshot.from_rows(["ID", "Model"], printers.rows)
        result = tables_match(printers, renamed)
        assert not result
        assert "columns" in result.message
