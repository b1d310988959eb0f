from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional

Clock = Callable[[], float]


class TTLMap:
    """In-memory TTL map for small caches.

    - get(key) -> Optional[Any]
    - set(key, value, ttl_seconds)

    `clock` defaults to `time.monotonic`; tests inject a fake to drive expiry.
    """

    def __init__(self, maxsize: int = 1024, *, clock: Optional[Clock] = None):
        self.maxsize = maxsize
        self._clock: Clock = clock or time.monotonic
        self._data: Dict[str, Any] = {}
        self._exp: Dict[str, float] = {}

    def get(self, key: str) -> Optional[Any]:
        exp = self._exp.get(key)
        if exp is None:
            return None
        if self._clock() >= exp:
            self.pop(key)
            return None
        return self._data.get(key)

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        if key not in self._data and len(self._data) >= self.maxsize:
            try:
                self.pop(next(iter(self._data)))
            except StopIteration:
                pass
        now = self._clock()
        self._data[key] = value
        self._exp[key] = now + ttl_seconds

    def pop(self, key: str) -> Optional[Any]:
        self._exp.pop(key, None)
        return self._data.pop(key, None)
