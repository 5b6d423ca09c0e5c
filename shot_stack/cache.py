from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable

from .models import ProcessedResult


@dataclass(frozen=True)
class CacheEntry:
    timestamp: float
    completed: bool
    result: ProcessedResult | None = None


class ExtractionCache:
    """Completion memo keyed by image identity, oldest-first eviction and TTL expiry."""

    def __init__(
        self,
        max_size: int = 100,
        ttl_seconds: float = 86400.0,
        *,
        keep_results: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_size = max(1, int(max_size))
        self.ttl_seconds = float(ttl_seconds)
        self.keep_results = keep_results
        self._clock = clock
        self._lock = threading.Lock()
        self._store: OrderedDict[str, CacheEntry] = OrderedDict()

    def _live(self, image_id: str) -> CacheEntry | None:
        entry = self._store.get(image_id)
        if entry is None:
            return None
        if self._clock() - entry.timestamp > self.ttl_seconds:
            del self._store[image_id]
            return None
        return entry

    def is_cached(self, image_id: str) -> bool:
        with self._lock:
            entry = self._live(image_id)
            return entry is not None and entry.completed

    def get(self, image_id: str) -> ProcessedResult | None:
        with self._lock:
            entry = self._live(image_id)
            return entry.result if entry else None

    def mark_completed(self, image_id: str, result: ProcessedResult | None = None) -> None:
        entry = CacheEntry(
            timestamp=self._clock(),
            completed=True,
            result=result if self.keep_results else None,
        )
        with self._lock:
            self._store.pop(image_id, None)
            self._store[image_id] = entry
            while len(self._store) > self.max_size:
                self._store.popitem(last=False)

    def remove(self, image_id: str) -> None:
        with self._lock:
            self._store.pop(image_id, None)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            now = self._clock()
            expired = sum(1 for e in self._store.values() if now - e.timestamp > self.ttl_seconds)
            return {
                "entries": len(self._store),
                "expired": expired,
                "max_size": self.max_size,
                "ttl_seconds": self.ttl_seconds,
            }
