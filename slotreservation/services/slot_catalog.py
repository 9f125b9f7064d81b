"""
Slot catalog: which slots of a doctor's day can still be reserved.

Combines the external availability provider, the pure ``SlotCalculator`` and
the ledger's live holds. Nothing is cached beyond a single call.
"""

from __future__ import annotations

from datetime import date, time
from typing import List, Protocol

from pendulum import DateTime

from ..domain.exceptions import InvalidSlotRequestError, SlotBusyError
from ..domain.models import Doctor, DoctorAvailability, SlotKey
from ..domain.slot_calculator import SlotCalculator
from .ledger import ReservationLedger


class AvailabilityProviderProtocol(Protocol):
    """Protocol describing the availability source needed by the catalog."""

    def get_availability(self, doctor_id: str, day: date) -> DoctorAvailability:
        """Return working windows and externally busy ranges for the day."""

    def list_doctors(self) -> List[Doctor]:
        """Return the doctors that can be booked."""


class SlotCatalog:
    """
    Read-only view of reservable slots.

    Dependency inversion toward a protocol makes it easy to plug in the HTTP
    provider or the mock implementation in tests.
    """

    def __init__(
        self,
        availability_provider: AvailabilityProviderProtocol,
        ledger: ReservationLedger,
        slot_calculator: SlotCalculator | None = None,
        *,
        timezone: str = "UTC",
        horizon_days: int = 90,
        lead_time_minutes: int = 30,
    ) -> None:
        self._provider = availability_provider
        self._ledger = ledger
        self._calculator = slot_calculator or SlotCalculator()
        self.timezone = timezone
        self.horizon_days = horizon_days
        self.lead_time_minutes = lead_time_minutes

    def available_slots(self, doctor_id: str, day: date, now: DateTime) -> List[SlotKey]:
        """
        Ordered free slots for the doctor's day.

        Raises:
            InvalidSlotRequestError: If the date is in the past or beyond the horizon
            AvailabilityError: If the provider fails
        """
        self.validate_date(day, now)

        candidates = self._candidate_keys(doctor_id, day, now)
        taken = self._ledger.live_keys(doctor_id, day, now)

        return [key for key in candidates if key not in taken]

    def validate_date(self, day: date, now: DateTime) -> None:
        """Ensure the date is within today .. today + horizon (in the catalog timezone)."""
        today = now.in_timezone(self.timezone).date()

        if day < today:
            raise InvalidSlotRequestError(f"{day.isoformat()} is in the past")

        last_day = today.add(days=self.horizon_days)
        if day > last_day:
            raise InvalidSlotRequestError(
                f"{day.isoformat()} is beyond the booking horizon ({self.horizon_days} days, "
                f"last bookable day {last_day.isoformat()})"
            )

    def validate_slot(self, slot_key: SlotKey, now: DateTime) -> None:
        """
        Ensure the key is one of the doctor's bookable slots right now.

        Ledger holds are not considered here; the ledger decides those.

        Raises:
            InvalidSlotRequestError: Off-grid, outside working hours, too soon or out of horizon
            SlotBusyError: Covered by an external booking or block
        """
        self.validate_date(slot_key.date, now)

        availability = self._provider.get_availability(slot_key.doctor_id, slot_key.date)
        start = slot_key.start_datetime(self.timezone)

        grid = {slot.start for slot in self._calculator.grid_slots(availability)}
        if start not in grid:
            raise InvalidSlotRequestError(f"{slot_key} is not a bookable slot for this doctor")

        if start < self._earliest_start(now):
            raise InvalidSlotRequestError(
                f"{slot_key} starts in less than {self.lead_time_minutes} minutes"
            )

        free = {slot.start for slot in self._calculator.candidate_slots(availability)}
        if start not in free:
            raise SlotBusyError(f"{slot_key} is already booked or blocked")

    def _candidate_keys(self, doctor_id: str, day: date, now: DateTime) -> List[SlotKey]:
        availability = self._provider.get_availability(doctor_id, day)
        slots = self._calculator.candidate_slots(
            availability,
            not_before=self._earliest_start(now),
        )

        return [
            SlotKey(
                doctor_id=doctor_id,
                date=day,
                start_time=self._wall_time(slot.start),
            )
            for slot in slots
        ]

    def _wall_time(self, moment: DateTime) -> time:
        local = moment.in_timezone(self.timezone)
        return time(local.hour, local.minute)

    def _earliest_start(self, now: DateTime) -> DateTime:
        return now.add(minutes=self.lead_time_minutes)
