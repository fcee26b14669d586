"""Request limiting by rate and by number of requests in flight."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from datetime import timedelta

ReleaseFunc = Callable[[], None]


class RateLimitError(Exception):
    def __init__(self) -> None:
        super().__init__("rate limit")


class MaxLimitError(Exception):
    def __init__(self) -> None:
        super().__init__("max limit")


class _TokenBucket:
    """Refills one token per interval up to ``burst``; starts full."""

    def __init__(self, interval: timedelta, burst: int, clock: Callable[[], float]) -> None:
        seconds = interval.total_seconds()
        self._rate = float("inf") if seconds <= 0 else 1.0 / seconds
        self._burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._last = clock()
        self._lock = threading.Lock()

    def allow(self) -> bool:
        if self._rate == float("inf"):
            return True
        with self._lock:
            now = self._clock()
            elapsed = max(0.0, now - self._last)
            self._last = now
            self._tokens = min(float(self._burst), self._tokens + elapsed * self._rate)
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return True
            return False


class _Slots:
    """A non-blocking counting semaphore."""

    def __init__(self, size: int) -> None:
        self._free = size
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        with self._lock:
            if self._free <= 0:
                return False
            self._free -= 1
            return True

    def release(self) -> None:
        with self._lock:
            self._free += 1


def _release_once(slots: _Slots | None) -> ReleaseFunc:
    """Return a function that gives a place back to ``slots`` at most once."""
    released = False
    lock = threading.Lock()

    def release() -> None:
        nonlocal released
        with lock:
            if released:
                return
            released = True
        if slots is not None:
            slots.release()

    return release


class Limiter:
    """Refuses requests over a rate and over a number in flight.

    A zero or missing ``interval`` disables the rate limit, and a zero ``max``
    disables the in-flight limit.
    """

    def __init__(
        self,
        interval: timedelta | None = None,
        burst: int = 0,
        max: int = 0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._rate = _TokenBucket(interval, burst, clock) if interval else None
        self._slots = _Slots(max) if max else None

    def acquire(self) -> ReleaseFunc:
        """Take a place or raise; return the function that gives it back."""
        if self._rate is not None and not self._rate.allow():
            raise RateLimitError()
        if self._slots is not None and not self._slots.try_acquire():
            raise MaxLimitError()
        return _release_once(self._slots)