"""
In-memory appointment store receiving confirmed reservations.
"""

import logging
import threading
import uuid
from datetime import date
from typing import Dict, List, Optional

from pendulum import DateTime

from ..domain.exceptions import BookingStoreError
from ..domain.models import BookingDetails, BookingRecord, SlotKey

logger = logging.getLogger(__name__)


class InMemoryBookingStore:
    """
    Durable-booking stand-in keyed on slot.

    ``create_booking`` is idempotent for the same slot and holder: a retried
    confirmation gets the record created the first time.
    """

    def __init__(self):
        self._bookings: Dict[SlotKey, BookingRecord] = {}
        self._lock = threading.Lock()

    def create_booking(
        self,
        slot_key: SlotKey,
        holder_id: str,
        reservation_id: str,
        details: BookingDetails,
        confirmed_at: DateTime,
    ) -> BookingRecord:
        with self._lock:
            existing = self._bookings.get(slot_key)
            if existing is not None:
                if existing.holder_id != holder_id:
                    raise BookingStoreError(f"{slot_key} is already booked by another patient")
                return existing

            record = BookingRecord(
                booking_id=f"APT-{uuid.uuid4().hex[:12].upper()}",
                slot_key=slot_key,
                holder_id=holder_id,
                reservation_id=reservation_id,
                confirmed_at=confirmed_at,
                details=details,
            )
            self._bookings[slot_key] = record

        logger.info("Booked %s for %s (%s)", slot_key, holder_id, record.booking_id)
        return record

    def get_booking(self, slot_key: SlotKey) -> Optional[BookingRecord]:
        with self._lock:
            return self._bookings.get(slot_key)

    def bookings_for(self, doctor_id: str, day: date) -> List[BookingRecord]:
        with self._lock:
            records = [
                record for key, record in self._bookings.items()
                if key.doctor_id == doctor_id and key.date == day
            ]
        return sorted(records, key=lambda record: record.slot_key.start_time)
