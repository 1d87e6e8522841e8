from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Dict, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    value: T
    expires_at: float


class TTLCache(Generic[T]):
    """Process-local key/value cache whose entries expire after ``ttl_seconds``."""

    def __init__(self, ttl_seconds: int, *, max_entries: int = 1024) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._store: Dict[str, CacheEntry[T]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._store)

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if entry.expires_at < time.monotonic():
                self._store.pop(key, None)
                return None
            return entry.value

    def set(self, key: str, value: T) -> None:
        if self._ttl <= 0:
            return
        with self._lock:
            if key not in self._store and len(self._store) >= self._max_entries:
                # oldest insertion goes first
                self._store.pop(next(iter(self._store)))
            self._store[key] = CacheEntry(value=value, expires_at=time.monotonic() + self._ttl)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
