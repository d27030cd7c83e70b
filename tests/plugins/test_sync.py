"""
Tests for Change Detection and the Sync Loop

These tests validate table-level change detection, propagation of changes
to SQL Server and the background sync controller lifecycle.
"""

from unittest.mock import Mock
import logging
import threading
import time

import pytest
import pyodbc
from access_mssql_sync.data_transfer import DataTransfer, full_migration
from access_mssql_sync.diff_detector import DiffDetector, TableStatus
from access_mssql_sync.snapshot_loader import SnapshotLoader
from access_mssql_sync.sync_controller import SyncController, SyncState
from access_mssql_sync.table_config import TableIdentity, TableRegistry


PRINTERS = TableIdentity("tblPrinters", "tblPrinters")


@pytest.fixture
def migrated(access_conn, mssql_conn, cache, registry, fake_odbc, printers_access, mssql_db):
    """Access and SQL Server after a full migration."""
    mssql_db.create("tblPrinters", ["ID", "Name", "Location"])
    mssql_db.create("Order-Details", ["OrderID", "Quantity"])
    loader = SnapshotLoader(access_conn, cache, registry, sleep=Mock())
    transfer = DataTransfer(mssql_conn, cache, registry)
    full_migration(loader, transfer)
    return DiffDetector(loader, transfer)


def wait_until(condition, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return False


class TestDiffDetector:

    def test_unchanged_table(self, migrated, printers_access, mssql_db):
        mssql_db.statements.clear()

        assert migrated.check_and_update(PRINTERS) is TableStatus.UNCHANGED
        assert not [s for s in mssql_db.statements if s.startswith("DELETE")]

    def test_changed_table_is_propagated(self, migrated, cache, printers_access, mssql_db, caplog):
        caplog.set_level(logging.INFO)
        printers_access.tables["tblPrinters"]["rows"][1][1] = "Canon2"

        assert migrated.check_and_update(PRINTERS) is TableStatus.UPDATED

        assert "Data mismatch at row 2, column Name" in caplog.text
        assert mssql_db.rows("tblPrinters")[1] == (2, "Canon2", "Floor 2")
        assert cache.get("tblPrinters").rows[1][1] == "Canon2"

    def test_row_count_change(self, migrated, printers_access, mssql_db):
        printers_access.tables["tblPrinters"]["rows"].append([4, "Brother", "Floor 3"])

        assert migrated.check_and_update(PRINTERS) is TableStatus.UPDATED
        assert len(mssql_db.rows("tblPrinters")) == 4

    def test_second_check_after_update_is_unchanged(self, migrated, printers_access):
        printers_access.tables["tblPrinters"]["rows"][0][2] = "Basement"

        assert migrated.check_and_update(PRINTERS) is TableStatus.UPDATED
        assert migrated.check_and_update(PRINTERS) is TableStatus.UNCHANGED

    def test_missing_baseline_is_cached_without_target_update(self, migrated, cache, mssql_db):
        cache.remove("tblPrinters")
        mssql_db.statements.clear()

        assert migrated.check_and_update(PRINTERS) is TableStatus.BASELINE
        assert cache.get("tblPrinters").row_count == 3
        assert not [s for s in mssql_db.statements if s.startswith(("DELETE", "INSERT"))]

    def test_failed_update_keeps_old_baseline(self, migrated, cache, printers_access, mssql_db):
        printers_access.tables["tblPrinters"]["rows"][1][1] = "Canon2"
        mssql_db.insert_error = pyodbc.OperationalError('08S01', 'Communication link failure')

        with pytest.raises(pyodbc.OperationalError):
            migrated.check_and_update(PRINTERS)

        assert cache.get("tblPrinters").rows[1][1] == "Canon"
        assert mssql_db.rows("tblPrinters")[1][1] == "Canon"

        # The change is picked up again once the target recovers
        mssql_db.insert_error = None
        assert migrated.check_and_update(PRINTERS) is TableStatus.UPDATED
        assert mssql_db.rows("tblPrinters")[1][1] == "Canon2"


class TestSyncController:

    @pytest.fixture
    def sync_registry(self):
        registry = TableRegistry()
        registry.register("tblPrinters")
        registry.register("Order Details")
        return registry

    @pytest.fixture
    def detector(self):
        detector = Mock()
        detector.check_and_update.return_value = TableStatus.UNCHANGED
        return detector

    def test_run_pass_checks_every_table(self, detector, sync_registry):
        controller = SyncController(detector, sync_registry, check_interval=0)

        results = controller.run_pass()

        assert results == {"tblPrinters": TableStatus.UNCHANGED, "Order-Details": TableStatus.UNCHANGED}
        assert controller.pass_count == 1

    def test_run_pass_continues_after_error(self, detector, sync_registry, caplog):
        detector.check_and_update.side_effect = [RuntimeError("boom"), TableStatus.UPDATED]
        controller = SyncController(detector, sync_registry, check_interval=0)

        results = controller.run_pass()

        assert results == {"Order-Details": TableStatus.UPDATED}
        assert "Error processing table tblPrinters: boom" in caplog.text

    def test_run_pass_stops_when_cancelled(self, detector, sync_registry):
        controller = SyncController(detector, sync_registry, check_interval=0)
        cancel_event = threading.Event()
        cancel_event.set()

        assert controller.run_pass(cancel_event) == {}
        detector.check_and_update.assert_not_called()

    def test_start_and_stop(self, detector, sync_registry):
        controller = SyncController(detector, sync_registry, check_interval=0.01)

        assert controller.state is SyncState.IDLE
        assert controller.start()
        try:
            assert controller.is_running
            assert wait_until(lambda: detector.check_and_update.call_count >= 4)
        finally:
            assert controller.stop(timeout=5)

        assert controller.state is SyncState.IDLE

    def test_start_while_running_is_rejected(self, detector, sync_registry, caplog):
        controller = SyncController(detector, sync_registry, check_interval=0.01)
        controller.start()
        try:
            assert not controller.start()
            assert "Data synchronization is already running." in caplog.text
        finally:
            controller.stop(timeout=5)

    def test_stop_when_idle(self, detector, sync_registry):
        controller = SyncController(detector, sync_registry)
        assert not controller.stop()

    def test_restart_after_stop(self, detector, sync_registry):
        controller = SyncController(detector, sync_registry, check_interval=0.01)
        controller.start()
        controller.stop(timeout=5)

        assert controller.start()
        controller.stop(timeout=5)

    def test_stop_does_not_wait_for_full_interval(self, detector, sync_registry):
        controller = SyncController(detector, sync_registry, check_interval=60)
        controller.start()
        assert wait_until(lambda: detector.check_and_update.called)

        started = time.monotonic()
        controller.stop(timeout=5)

        assert time.monotonic() - started < 5
        assert not controller.is_running

    def test_empty_registry(self, detector):
        controller = SyncController(detector, TableRegistry(), check_interval=0.01)
        controller.start()
        try:
            assert wait_until(lambda: controller.pass_count >= 2)
        finally:
            controller.stop(timeout=5)
        detector.check_and_update.assert_not_called()

    def test_intervals_from_environment(self, monkeypatch, detector, sync_registry):
        monkeypatch.setenv('SYNC_CHECK_INTERVAL', '2.5')
        monkeypatch.setenv('SYNC_PASS_INTERVAL', '30')

        controller = SyncController(detector, sync_registry)

        assert controller.check_interval == 2.5
        assert controller.pass_interval == 30.0

    def test_end_to_end_change_is_synced(self, migrated, registry, printers_access, mssql_db):
        controller = SyncController(migrated, registry, check_interval=0.01)
        printers_access.tables["tblPrinters"]["rows"][1][1] = "Canon2"

        controller.start()
        try:
            assert wait_until(lambda: mssql_db.rows("tblPrinters")[1][1] == "Canon2")
        finally:
            controller.stop(timeout=5)
