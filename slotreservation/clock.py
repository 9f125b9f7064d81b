"""
Time sources used for hold expiry.

Every ledger operation captures ``now`` once from a clock and compares all
timestamps against that single value.
"""

from __future__ import annotations

import threading
import time
from typing import Protocol

import pendulum
from pendulum import DateTime


class Clock(Protocol):
    """Anything that can tell the current time as an aware datetime."""

    def now(self) -> DateTime:
        """Return the current time."""


class SystemClock:
    """
    Wall-clock anchored, monotonically advancing clock.

    The wall time is read once at construction; afterwards time advances with
    ``time.monotonic()`` so NTP adjustments can never move expiry backwards.
    """

    def __init__(self, timezone: str = "UTC"):
        self.timezone = timezone
        self._anchor = pendulum.now(timezone)
        self._anchor_monotonic = time.monotonic()

    def now(self) -> DateTime:
        elapsed = time.monotonic() - self._anchor_monotonic
        return self._anchor.add(microseconds=int(elapsed * 1_000_000))


class ManualClock:
    """
    Clock that only moves when told to.

    Used by the ``simulate`` command and by tests to walk through hold
    lifecycles without sleeping.
    """

    def __init__(self, start: DateTime | None = None, timezone: str = "UTC"):
        self._now = start or pendulum.now(timezone)
        self._lock = threading.Lock()

    def now(self) -> DateTime:
        with self._lock:
            return self._now

    def advance(self, **kwargs) -> DateTime:
        """Move forward by a pendulum duration, e.g. ``advance(minutes=10)``."""
        with self._lock:
            self._now = self._now.add(**kwargs)
            return self._now

    def set(self, moment: DateTime) -> None:
        with self._lock:
            if moment < self._now:
                raise ValueError("ManualClock cannot move backwards")
            self._now = moment
