"""
Mock doctor availability provider for running without the hospital API.
"""

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, List

from ..domain.exceptions import AvailabilityError
from ..domain.models import Doctor, DoctorAvailability, TimeRange, WorkingHours
from .schedule import busy_range, default_working_hours, doctor_from_payload, working_hours_from_weekly

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_availability_data.json"


class MockAvailabilityProvider:
    """
    Provider that serves doctor schedules from a JSON file.

    The file mirrors what the hospital API exposes: weekly availability per
    doctor, daily breaks, date-specific blocked slots and already booked
    appointments. Useful for the CLI's ``--mock`` mode and for tests.
    """

    def __init__(
        self,
        data_file: Path | None = None,
        timezone: str = "UTC",
        slot_minutes: int | None = None,
        data: Dict[str, Any] | None = None,
        default_hours: WorkingHours | None = None,
    ):
        """
        Initialize the mock provider.

        Args:
            data_file: JSON file to load, defaults to the bundled sample
            timezone: IANA timezone the schedule times are expressed in
            slot_minutes: Override for the slot width in the data
            data: Already-parsed data, takes precedence over ``data_file``
            default_hours: Hours for doctors without a weekly schedule
        """
        self.timezone = timezone
        self.default_hours = default_hours or default_working_hours(timezone)
        self.data_file = data_file or DEFAULT_DATA_FILE
        self._data = data if data is not None else self._load_data()
        self.slot_minutes = slot_minutes or int(self._data.get("slotMinutes", 15))
        self._doctors = {
            str(entry.get("_id") or entry.get("id")): entry
            for entry in self._data.get("doctors", [])
        }

    def _load_data(self) -> Dict[str, Any]:
        """Load mock schedule data from the JSON file."""
        if not self.data_file.exists():
            logger.warning("Mock availability file %s not found, no doctors loaded", self.data_file)
            return {}

        try:
            with open(self.data_file, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise AvailabilityError(f"Could not read mock availability from {self.data_file}: {exc}") from exc

    def list_doctors(self) -> List[Doctor]:
        return [doctor_from_payload(entry) for entry in self._doctors.values()]

    def get_availability(self, doctor_id: str, day: date) -> DoctorAvailability:
        """
        Lay out the doctor's working window and busy ranges for ``day``.

        Raises:
            AvailabilityError: If the doctor is unknown
        """
        entry = self._doctors.get(doctor_id)
        if entry is None:
            raise AvailabilityError(f"Unknown doctor: {doctor_id}")

        try:
            working_hours = working_hours_from_weekly(entry.get("availability"), self.default_hours)
        except ValueError as exc:
            raise AvailabilityError(f"Invalid availability for doctor {doctor_id}: {exc}") from exc

        window = working_hours.get_working_hours_for_day(day)

        return DoctorAvailability(
            doctor_id=doctor_id,
            date=day,
            windows=[window] if window else [],
            busy=self._busy_ranges(entry, day),
            slot_minutes=self.slot_minutes,
        )

    def _busy_ranges(self, entry: Dict[str, Any], day: date) -> List[TimeRange]:
        busy: List[TimeRange] = []
        iso_day = day.isoformat()

        dated = [
            item for item in entry.get("blockedSlots", []) + entry.get("bookedSlots", [])
            if item.get("date") == iso_day
        ]

        for item in entry.get("breaks", []) + dated:
            try:
                busy.append(busy_range(day, item, self.timezone, self.slot_minutes))
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping invalid schedule entry %r: %s", item, exc)

        return busy
