from __future__ import annotations

import time
from threading import Lock
from typing import Any, Callable, Dict, Optional, Tuple


class TTLCache:
    """In-memory cache whose entries expire ``ttl`` seconds after being stored.

    The clock is injectable so expiry can be tested without sleeping. A
    ``ttl`` of zero disables caching entirely.
    """

    def __init__(self, ttl: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._lock = Lock()
        self._load_locks: Dict[str, Lock] = {}

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expiry = entry
            if self.clock() < expiry:
                return value
            del self._entries[key]
            return None

    def set(self, key: str, value: Any) -> None:
        if self.ttl <= 0:
            return
        with self._lock:
            self._entries[key] = (value, self.clock() + self.ttl)

    def get_or_load(self, key: str, loader: Callable[[], Any]) -> Any:
        """Return the cached value, calling ``loader`` at most once per miss.

        Concurrent callers missing the same key wait for the first load.
        """

        cached = self.get(key)
        if cached is not None:
            return cached
        with self._lock:
            load_lock = self._load_locks.setdefault(key, Lock())
        with load_lock:
            cached = self.get(key)
            if cached is not None:
                return cached
            value = loader()
            self.set(key, value)
            return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
