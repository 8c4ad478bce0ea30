"""In-memory TTL stores for settled references and pending settlements."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Callable, Generic, Iterable, Optional, TypeVar

from ..domain.entities import CacheEntry

logger = logging.getLogger(__name__)

V = TypeVar("V")

TimeSource = Callable[[], float]


class ExpiringStore(Generic[V]):
    """Thread-safe map whose entries expire ``ttl_seconds`` after insertion.

    An entry is valid while ``now <= expiry``. Lazy pruning on read and the
    eager ``cleanup`` sweep share that boundary.
    """

    def __init__(
        self, ttl_seconds: float, time_source: TimeSource = time.monotonic
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._now = time_source
        self._entries: dict[str, tuple[float, V]] = {}
        self._lock = threading.Lock()

    def _put(self, key: str, value: V) -> float:
        expiry = self._now() + self.ttl_seconds
        with self._lock:
            self._entries[key] = (expiry, value)
        return expiry

    def _get(self, key: str) -> Optional[tuple[float, V]]:
        with self._lock:
            item = self._entries.get(key)
            if item is None:
                return None
            if self._now() > item[0]:
                del self._entries[key]
                return None
            return item

    def _pop(self, key: str) -> Optional[V]:
        with self._lock:
            item = self._entries.pop(key, None)
        if item is None or self._now() > item[0]:
            return None
        return item[1]

    def remove(self, key: str) -> bool:
        """Explicitly invalidate ``key``. Returns True if it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def cleanup(self) -> int:
        """Delete every expired entry and return how many were removed."""
        now = self._now()
        with self._lock:
            expired = [key for key, (expiry, _) in self._entries.items() if now > expiry]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def size(self) -> int:
        with self._lock:
            return len(self._entries)


class SettlementCache(ExpiringStore[str]):
    """References already proven paid, with their settlement signature."""

    def is_paid(self, reference: str) -> bool:
        return self._get(reference) is not None

    def mark_paid(self, reference: str, signature: str) -> CacheEntry:
        expiry = self._put(reference, signature)
        return CacheEntry(reference=reference, expiry=expiry, signature=signature)

    def get_entry(self, reference: str) -> Optional[CacheEntry]:
        item = self._get(reference)
        if item is None:
            return None
        expiry, signature = item
        return CacheEntry(reference=reference, expiry=expiry, signature=signature)

    def get_signature(self, reference: str) -> Optional[str]:
        entry = self.get_entry(reference)
        return entry.signature if entry else None


class PendingSettlements(ExpiringStore[str]):
    """Signatures broadcast for a reference whose confirmation timed out.

    Consulted on a retried request before broadcasting again; never treated
    as proof of payment.
    """

    def record(self, reference: str, signature: str) -> None:
        self._put(reference, signature)

    def take(self, reference: str) -> Optional[str]:
        return self._pop(reference)


class CacheSweeper:
    """Background task that periodically prunes expired entries.

    Owned by the application lifespan: ``start`` on startup and ``stop`` on
    shutdown.
    """

    def __init__(
        self, stores: Iterable[ExpiringStore], interval_seconds: float = 60.0
    ) -> None:
        self._stores = list(stores)
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep(self) -> int:
        removed = sum(store.cleanup() for store in self._stores)
        if removed:
            logger.info("Cleaned up %d expired payment entries", removed)
        return removed

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            self.sweep()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="x402-cache-sweeper")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
