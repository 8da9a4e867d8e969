"""Single-slot delay with a pluggable clock."""

from __future__ import annotations

import threading
import time
from typing import Optional, Protocol


class Clock(Protocol):
    """Source of monotonic time in seconds."""

    def monotonic(self) -> float:
        """Return the current monotonic time."""
        ...


class SystemClock:
    """Clock backed by ``time.monotonic``."""

    def monotonic(self) -> float:
        return time.monotonic()


class ManualClock:
    """Clock that only moves when told to, for deterministic tests."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._lock = threading.Lock()

    def monotonic(self) -> float:
        with self._lock:
            return self._now

    def advance(self, seconds: float) -> float:
        """Move time forward by ``seconds`` and return the new reading."""
        if seconds < 0:
            raise ValueError("ManualClock cannot move backwards")
        with self._lock:
            self._now += seconds
            return self._now


class Debouncer:
    """Hold at most one pending deadline; every trigger pushes it back.

    The owner polls ``consume``: it returns ``True`` exactly once after the
    delay has elapsed since the latest ``trigger``.
    """

    def __init__(self, delay: float, clock: Optional[Clock] = None) -> None:
        if delay <= 0:
            raise ValueError("delay must be positive")
        self._delay = delay
        self._clock: Clock = clock or SystemClock()
        self._deadline: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def delay(self) -> float:
        """Return the quiet period in seconds."""
        return self._delay

    @property
    def pending(self) -> bool:
        """Return whether a deadline is armed."""
        with self._lock:
            return self._deadline is not None

    def trigger(self) -> None:
        """Arm, or re-arm, the deadline at ``now + delay``."""
        with self._lock:
            self._deadline = self._clock.monotonic() + self._delay

    def remaining(self) -> Optional[float]:
        """Return seconds until the deadline, or ``None`` when idle."""
        with self._lock:
            if self._deadline is None:
                return None
            return max(0.0, self._deadline - self._clock.monotonic())

    def consume(self) -> bool:
        """Disarm and return ``True`` if the deadline has passed."""
        with self._lock:
            if self._deadline is None or self._clock.monotonic() < self._deadline:
                return False
            self._deadline = None
            return True

    def cancel(self) -> None:
        """Disarm without firing."""
        with self._lock:
            self._deadline = None


__all__ = ["Clock", "SystemClock", "ManualClock", "Debouncer"]
