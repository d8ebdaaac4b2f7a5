"""Single-value TTL cache with an injectable clock."""
from __future__ import annotations

import time
from typing import Any, Callable


class TtlCache:
    """Holds one value and the time it was stored.

    The clock is injected so expiry can be tested without sleeping.
    """

    def __init__(
        self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._value: Any = None
        self._stored_at: float | None = None

    def get(self) -> Any | None:
        """Return the cached value, or None if empty or expired."""
        if self._stored_at is None:
            return None
        if self._clock() - self._stored_at >= self.ttl_seconds:
            return None
        return self._value

    def put(self, value: Any) -> None:
        self._value = value
        self._stored_at = self._clock()

    def clear(self) -> None:
        self._value = None
        self._stored_at = None
