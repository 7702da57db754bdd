"""
TTLCache -- explicit expiring cache owned by the settings provider.

Entries expire after ``ttl_seconds`` as measured by the injected Clock.
Invalidation is explicit: ``invalidate(key)``, ``invalidate_prefix(prefix)``
or ``clear()``.  There is no module-level state.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Any, Generic, TypeVar

from billing_kernel.domain.clock import Clock

V = TypeVar("V")

_MISSING = object()


class TTLCache(Generic[V]):

    def __init__(self, clock: Clock, ttl_seconds: int = 300):
        self._clock = clock
        self._ttl = timedelta(seconds=ttl_seconds)
        self._entries: dict[str, tuple[datetime, V]] = {}
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> V | Any:
        with self._lock:
            entry = self._entries.get(key, _MISSING)
            if entry is _MISSING:
                return default
            stored_at, value = entry
            if self._clock.now() - stored_at >= self._ttl:
                del self._entries[key]
                return default
            return value

    def put(self, key: str, value: V) -> None:
        with self._lock:
            self._entries[key] = (self._clock.now(), value)

    def invalidate(self, key: str) -> bool:
        """Drop one entry.  Returns True if it was present."""
        with self._lock:
            return self._entries.pop(key, _MISSING) is not _MISSING

    def invalidate_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [k for k in self._entries if k.startswith(prefix)]
            for k in doomed:
                del self._entries[k]
            return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
