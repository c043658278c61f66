"""Time-windowed in-memory cache for fetched datasets and quotes."""

import logging
import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional


logger = logging.getLogger(__name__)


class DatasetCache:
    """Caches one value per key until its window expires.

    Values must expose a ``fetched_at`` datetime (``Dataset`` envelopes do);
    plain dicts are accepted when they carry a ``fetched_at`` key. Expired
    entries are only replaced on the next read, never refreshed in the
    background.
    """

    def __init__(self, default_window: timedelta,
                 windows: Optional[Dict[str, timedelta]] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 name: str = "datasets"):
        """Initialize the cache.

        Args:
            default_window: Lifetime for keys without their own window
            windows: Per-key lifetimes
            clock: Source of "now", injectable for tests
            name: Label used in log messages
        """
        self.default_window = default_window
        self.windows = dict(windows or {})
        self.clock = clock
        self.name = name
        self._entries: Dict[str, Any] = {}
        self._lock = threading.Lock()

        # Statistics
        self.stats = {"hits": 0, "misses": 0}

    def window_for(self, key: str) -> timedelta:
        return self.windows.get(key, self.default_window)

    def get_or_fetch(self, key: str, fetcher: Callable[[], Any]) -> Any:
        """Return the cached value for ``key`` or fetch and store a new one.

        Two callers missing at the same moment may both run ``fetcher``; the
        later store wins. The fetch itself runs without holding the lock.
        """
        entry = self.peek(key)
        if entry is not None:
            with self._lock:
                self.stats["hits"] += 1
            logger.debug(f"{self.name} cache hit for {key}")
            return entry

        with self._lock:
            self.stats["misses"] += 1
        logger.info(f"{self.name} cache miss for {key}, fetching")

        value = fetcher()
        with self._lock:
            self._entries[key] = value
        return value

    def peek(self, key: str) -> Optional[Any]:
        """Return the live entry for ``key`` without fetching."""
        with self._lock:
            entry = self._entries.get(key)

        if entry is None:
            return None

        age = self.clock() - _fetched_at(entry)
        if age < self.window_for(key):
            return entry
        return None

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = value

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one entry, or every entry when ``key`` is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def _stats_snapshot(self) -> Dict[str, int]:
        with self._lock:
            return self.stats.copy()

    def get_status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "entries": len(self.keys()),
            "default_window_seconds": self.default_window.total_seconds(),
            "stats": self._stats_snapshot(),
        }


def _fetched_at(entry: Any) -> datetime:
    if isinstance(entry, dict):
        return entry["fetched_at"]
    return entry.fetched_at
