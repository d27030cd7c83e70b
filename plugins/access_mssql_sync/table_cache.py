"""
Snapshot Cache Module

Thread-safe in-memory cache of table snapshots keyed by sanitized table name.

The cache holds the last known synchronized state of every table. The sync
loop treats a hit as the baseline to compare against and a miss as "never
synced". Entries expire after an idle window (sliding expiration); priority
decides which entries go first when the cache is compacted.
"""

from dataclasses import dataclass
from datetime import timedelta
from enum import IntEnum
from typing import Callable, Dict, List, Optional
import logging
import os
import threading
import time

from access_mssql_sync.snapshot import TableSnapshot

logger = logging.getLogger(__name__)


def _default_sliding_expiration() -> timedelta:
    hours = float(os.environ.get('CACHE_SLIDING_EXPIRATION_HOURS', '17'))
    return timedelta(hours=hours)


class CachePriority(IntEnum):
    """Retention priority; lower values are compacted first."""

    LOW = 0
    NORMAL = 1
    HIGH = 2
    NEVER_REMOVE = 3


@dataclass
class _CacheEntry:
    snapshot: TableSnapshot
    sliding_expiration: Optional[float]
    priority: CachePriority
    last_access: float

    def is_expired(self, now: float) -> bool:
        if self.sliding_expiration is None:
            return False
        return now - self.last_access >= self.sliding_expiration


class SnapshotCache:
    """
    Key-value store of TableSnapshot objects with sliding expiration.

    Every successful get() renews the entry's idle window. Expired entries
    are dropped lazily on access and by purge_expired()/compact(). When a
    size_limit is set, inserting past it compacts the cache.

    Usage:
        cache = SnapshotCache()
        cache.set("tblPrinters", snapshot, priority=CachePriority.HIGH)
        baseline = cache.get("tblPrinters")
    """

    def __init__(
        self,
        default_sliding_expiration: Optional[timedelta] = None,
        size_limit: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            default_sliding_expiration: Idle window for entries set without one
                (defaults to CACHE_SLIDING_EXPIRATION_HOURS or 17 hours)
            size_limit: Maximum number of entries before compaction, None for unbounded
            clock: Monotonic time source in seconds
        """
        if default_sliding_expiration is None:
            default_sliding_expiration = _default_sliding_expiration()
        self.default_sliding_expiration = default_sliding_expiration
        self.size_limit = size_limit
        self._clock = clock
        self._entries: Dict[str, _CacheEntry] = {}
        self._lock = threading.RLock()

    def set(
        self,
        key: str,
        snapshot: TableSnapshot,
        sliding_expiration: Optional[timedelta] = None,
        priority: CachePriority = CachePriority.NORMAL,
    ) -> None:
        """
        Insert or replace a snapshot.

        Args:
            key: Sanitized table name
            snapshot: Snapshot to store; the cache owns it from now on
            sliding_expiration: Idle window for this entry (default: cache default)
            priority: Retention priority during compaction
        """
        window = sliding_expiration if sliding_expiration is not None else self.default_sliding_expiration
        with self._lock:
            self._entries[key] = _CacheEntry(
                snapshot=snapshot,
                sliding_expiration=window.total_seconds(),
                priority=priority,
                last_access=self._clock(),
            )
            if self.size_limit is not None and len(self._entries) > self.size_limit:
                overflow = len(self._entries) - self.size_limit
                self._compact_count(overflow)

    def get(self, key: str) -> Optional[TableSnapshot]:
        """Return the snapshot for a key, or None if missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            now = self._clock()
            if entry.is_expired(now):
                del self._entries[key]
                logger.info(f"Cache entry for {key} expired")
                return None
            entry.last_access = now
            return entry.snapshot

    def remove(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def keys(self) -> List[str]:
        """Keys of live (non-expired) entries."""
        with self._lock:
            now = self._clock()
            return [k for k, e in self._entries.items() if not e.is_expired(now)]

    def purge_expired(self) -> int:
        """Drop every expired entry and return how many were dropped."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.info(f"Purged {len(expired)} expired cache entries")
        return len(expired)

    def compact(self, fraction: float) -> int:
        """
        Remove a fraction of the cache.

        Expired entries go first, then the lowest-priority entries with the
        oldest last access. NEVER_REMOVE entries are kept.

        Args:
            fraction: Share of current entries to remove, between 0 and 1

        Returns:
            Number of entries removed
        """
        if not 0 <= fraction <= 1:
            raise ValueError(f"fraction must be between 0 and 1, got {fraction}")
        with self._lock:
            target = int(len(self._entries) * fraction)
            removed = self._compact_count(target)
        logger.info(f"Compacted cache: removed {removed} entries")
        return removed

    def _compact_count(self, count: int) -> int:
        # caller holds the lock
        if count <= 0:
            return 0
        removed = 0
        now = self._clock()
        for key in [k for k, e in self._entries.items() if e.is_expired(now)]:
            del self._entries[key]
            removed += 1

        candidates = sorted(
            (e.priority, e.last_access, k)
            for k, e in self._entries.items()
            if e.priority is not CachePriority.NEVER_REMOVE
        )
        for _, _, key in candidates:
            if removed >= count:
                break
            del self._entries[key]
            removed += 1
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def __len__(self) -> int:
        return len(self.keys())
