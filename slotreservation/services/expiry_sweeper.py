"""
Background reclamation of expired holds.

The sweeper only speeds up availability: ``try_hold`` and ``transition``
re-check expiry themselves, so a delayed sweep never makes an operation wrong.
"""

from __future__ import annotations

import logging
import threading
from typing import List, Set

from ..clock import Clock
from ..domain.models import SlotKey
from .events import EventBus, ReservationExpiringSoon, SlotFreed
from .ledger import ReservationLedger

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """
    Periodically evicts expired holds, announces freed slots and archives
    confirmed bookings of past days.

    Also warns each holder once when their hold enters the final
    ``warning_seconds`` of its window.
    """

    def __init__(
        self,
        ledger: ReservationLedger,
        clock: Clock,
        events: EventBus,
        *,
        interval_seconds: float = 5.0,
        warning_seconds: int = 120,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self._ledger = ledger
        self._clock = clock
        self._events = events
        self.interval_seconds = interval_seconds
        self.warning_seconds = warning_seconds
        self._warned: Set[str] = set()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> List[SlotKey]:
        """Run one sweep pass and return the freed keys."""
        now = self._clock.now()

        freed = self._ledger.sweep_expired(now)
        for slot_key in freed:
            self._events.publish(SlotFreed(slot_key=slot_key, reason="expired"))

        self._ledger.archive_past(now)

        if self.warning_seconds > 0:
            self._warn_expiring(now)

        return freed

    def start(self) -> None:
        """Start the background thread. Calling it twice is a no-op."""
        if self.running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="slot-expiry-sweeper",
            daemon=True,
        )
        self._thread.start()
        logger.info("Expiry sweeper started (every %.1fs)", self.interval_seconds)

    def stop(self, timeout: float | None = 5.0) -> None:
        """Signal the thread to stop and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
            logger.info("Expiry sweeper stopped")

    def __enter__(self) -> "ExpirySweeper":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                logger.exception("Expiry sweep failed")
            self._stop_event.wait(self.interval_seconds)

    def _warn_expiring(self, now) -> None:
        live_ids = set()

        for reservation in self._ledger.expiring_between(now, now.add(seconds=self.warning_seconds)):
            live_ids.add(reservation.reservation_id)
            if reservation.reservation_id in self._warned:
                continue

            self._warned.add(reservation.reservation_id)
            self._events.publish(
                ReservationExpiringSoon(
                    slot_key=reservation.slot_key,
                    holder_id=reservation.holder_id,
                    reservation_id=reservation.reservation_id,
                    expires_at=reservation.expires_at,
                    remaining_seconds=reservation.to_handle().remaining_seconds(now),
                )
            )

        # Forget holds that left the window (confirmed, released, expired or extended).
        self._warned &= live_ids
