from __future__ import annotations
import time
from typing import Any, Callable, Tuple


class TTLCache:
    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._store: dict[str, Tuple[float, Any]] = {}

    def get(self, key: str, loader: Callable[[], Any]) -> Any:
        now = self._clock()
        hit = self._store.get(key)
        if hit and (now - hit[0]) < self.ttl_seconds:
            return hit[1]
        val = loader()
        self._store[key] = (now, val)
        self._evict(now)
        return val

    def _evict(self, now: float) -> None:
        stale = [k for k, (ts, _) in self._store.items() if now - ts >= self.ttl_seconds]
        for k in stale:
            self._store.pop(k, None)

    def invalidate(self, key: str | None = None) -> None:
        if key is None:
            self._store.clear()
        else:
            self._store.pop(key, None)

    def __len__(self) -> int:
        return len(self._store)
