"""Process-wide spacing of outbound provider calls."""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

DEFAULT_MIN_INTERVAL_SECONDS = 0.05


class RateLimiter:
    """Serializes callers so consecutive slots are at least ``min_interval`` apart.

    A single lock guards the "last slot" timestamp; it is held across the
    wait so that concurrent callers queue up instead of computing
    overlapping windows. Nothing is held once :meth:`wait_for_slot` returns;
    the granted slot time is returned to the caller.
    """

    def __init__(
        self,
        min_interval: float = DEFAULT_MIN_INTERVAL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if min_interval < 0:
            raise ValueError("min_interval must be >= 0")
        self.min_interval = float(min_interval)
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_slot: Optional[float] = None

    def wait_for_slot(self) -> float:
        with self._lock:
            if self._last_slot is not None:
                elapsed = self._clock() - self._last_slot
                if elapsed < self.min_interval:
                    self._sleep(self.min_interval - elapsed)
            slot = self._clock()
            self._last_slot = slot
        return slot

    @classmethod
    def from_config(cls, rate_limits: dict, **kwargs) -> "RateLimiter":
        raw = rate_limits.get("min_interval_ms")
        try:
            interval = float(raw) / 1000.0 if raw is not None else DEFAULT_MIN_INTERVAL_SECONDS
        except (TypeError, ValueError):
            interval = DEFAULT_MIN_INTERVAL_SECONDS
        return cls(interval, **kwargs)
