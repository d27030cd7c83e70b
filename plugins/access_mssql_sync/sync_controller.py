"""
Sync Controller Module

Runs the continuous Access -> SQL Server synchronization loop on a background
thread.

The controller owns its state: one worker thread and one cancellation event.
Starting while running is rejected (not queued), stopping while idle does
nothing. Stop takes effect at the next wait between tables or passes; a table
check already in progress is allowed to finish.
"""

from enum import Enum
from typing import Dict, Optional
import logging
import os
import threading

from access_mssql_sync.diff_detector import DiffDetector, TableStatus
from access_mssql_sync.table_config import TableRegistry

logger = logging.getLogger(__name__)


DEFAULT_CHECK_INTERVAL_SECONDS = 5.0
DEFAULT_PASS_INTERVAL_SECONDS = 0.0


def _get_interval_config():
    """
    Get polling intervals from environment variables.

    Returns:
        Tuple of (check_interval, pass_interval) in seconds
    """
    check = float(os.environ.get('SYNC_CHECK_INTERVAL', str(DEFAULT_CHECK_INTERVAL_SECONDS)))
    between_passes = float(os.environ.get('SYNC_PASS_INTERVAL', str(DEFAULT_PASS_INTERVAL_SECONDS)))
    return max(0.0, check), max(0.0, between_passes)


class SyncState(Enum):
    IDLE = 'idle'
    RUNNING = 'running'


class SyncController:
    """
    Polls every registered table and propagates changes until stopped.

    Usage:
        controller = SyncController(detector, registry)
        controller.start()
        ...
        controller.stop()
    """

    def __init__(
        self,
        detector: DiffDetector,
        registry: TableRegistry,
        check_interval: Optional[float] = None,
        pass_interval: Optional[float] = None,
    ):
        """
        Initialize the sync controller.

        Args:
            detector: DiffDetector performing the per-table check
            registry: Tables to poll
            check_interval: Seconds to wait after each table check (default 5)
            pass_interval: Seconds to wait after each full pass (default 0)
        """
        env_check, env_pass = _get_interval_config()
        self.detector = detector
        self.registry = registry
        self.check_interval = check_interval if check_interval is not None else env_check
        self.pass_interval = pass_interval if pass_interval is not None else env_pass

        self._lock = threading.Lock()
        self._cancel_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.pass_count = 0
        self.last_pass: Dict[str, TableStatus] = {}

    @property
    def state(self) -> SyncState:
        with self._lock:
            running = self._thread is not None and self._thread.is_alive()
        return SyncState.RUNNING if running else SyncState.IDLE

    @property
    def is_running(self) -> bool:
        return self.state is SyncState.RUNNING

    def start(self) -> bool:
        """
        Start the sync loop on a background thread.

        Returns:
            True if started, False if a loop is already running
        """
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                logger.warning("Data synchronization is already running.")
                return False

            self._cancel_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._cancel_event,),
                name="access-mssql-sync",
                daemon=True,
            )
            self._thread.start()

        logger.info("Data synchronization started.")
        return True

    def stop(self, timeout: Optional[float] = None) -> bool:
        """
        Signal the sync loop to stop and wait for it to exit.

        Args:
            timeout: Seconds to wait for the thread, None to wait until it exits

        Returns:
            True if a running loop was stopped, False if nothing was running
        """
        with self._lock:
            thread = self._thread
            if thread is None or not thread.is_alive():
                return False
            self._cancel_event.set()

        thread.join(timeout)
        logger.info("Data synchronization stopped.")
        return True

    def join(self, timeout: Optional[float] = None) -> None:
        thread = self._thread
        if thread is not None:
            thread.join(timeout)

    def run_pass(self, cancel_event: Optional[threading.Event] = None) -> Dict[str, TableStatus]:
        """
        Check every registered table once.

        Errors for one table are logged and the pass continues.

        Args:
            cancel_event: Event that ends the pass early when set

        Returns:
            Status per sanitized table name for the tables checked successfully
        """
        results: Dict[str, TableStatus] = {}

        for identity in self.registry.identities():
            if cancel_event is not None and cancel_event.is_set():
                break
            try:
                results[identity.sanitized_name] = self.detector.check_and_update(identity)
            except Exception as e:
                logger.error(f"Error processing table {identity.sanitized_name}: {e}")

            # Delay between checks to reduce load on the Access file
            if cancel_event is not None and cancel_event.wait(self.check_interval):
                break

        self.pass_count += 1
        self.last_pass = results
        return results

    def _run(self, cancel_event: threading.Event) -> None:
        while not cancel_event.is_set():
            self.run_pass(cancel_event)
            if not self.registry.identities() and not cancel_event.is_set():
                # Nothing registered yet; avoid spinning
                cancel_event.wait(max(self.check_interval, self.pass_interval, 0.1))
                continue
            if self.pass_interval and cancel_event.wait(self.pass_interval):
                break

        logger.info("Data synchronization task has been stopped by exiting logic loop.")
