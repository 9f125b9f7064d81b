"""
Best-effort notifications for subscribed booking UIs.

Delivery is not required for correctness: the ledger re-validates on every
operation, so a lost or failing subscriber only delays a UI refresh.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Union

from pendulum import DateTime

from ..domain.models import SlotKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotHeld:
    slot_key: SlotKey
    holder_id: str
    expires_at: DateTime


@dataclass(frozen=True)
class SlotFreed:
    slot_key: SlotKey
    reason: str  # "released" or "expired"


@dataclass(frozen=True)
class ReservationExpiringSoon:
    slot_key: SlotKey
    holder_id: str
    reservation_id: str
    expires_at: DateTime
    remaining_seconds: int


@dataclass(frozen=True)
class ReservationConfirmed:
    slot_key: SlotKey
    holder_id: str
    booking_id: str


ReservationEvent = Union[SlotHeld, SlotFreed, ReservationExpiringSoon, ReservationConfirmed]
Subscriber = Callable[[ReservationEvent], None]


class EventBus:
    """Synchronous in-process fan-out to subscribers."""

    def __init__(self):
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a callback. Returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            with self._lock:
                if subscriber in self._subscribers:
                    self._subscribers.remove(subscriber)

        return unsubscribe

    def publish(self, event: ReservationEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)

        for subscriber in subscribers:
            try:
                subscriber(event)
            except Exception:
                logger.exception("Subscriber %r failed on %s", subscriber, type(event).__name__)
