"""
Hospital REST API client for doctor availability.
"""

import logging
from datetime import date
from typing import Any, Dict, List

import requests

from ..domain.exceptions import AvailabilityError
from ..domain.models import Doctor, DoctorAvailability, TimeRange, WorkingHours
from .schedule import busy_range, default_working_hours, doctor_from_payload, working_hours_from_weekly

logger = logging.getLogger(__name__)


class HttpAvailabilityProvider:
    """
    Reads doctor schedules and booked slots from the hospital API.

    Endpoints used:
    - ``GET /users/doctors`` - bookable doctors
    - ``GET /users/doctors/{id}`` - doctor document with weekly ``availability``
    - ``GET /appointments/availability/{id}?date=YYYY-MM-DD`` - booked slots
    """

    def __init__(
        self,
        base_url: str,
        timezone: str = "UTC",
        slot_minutes: int = 15,
        timeout: float = 10,
        access_token: str | None = None,
        default_hours: WorkingHours | None = None,
    ):
        """
        Initialize the API client.

        Args:
            base_url: API root, e.g. ``http://localhost:5000/api``
            timezone: IANA timezone the schedule times are expressed in
            slot_minutes: Slot width used for the grid and for bookings without duration
            timeout: Request timeout in seconds
            access_token: Optional bearer token
            default_hours: Hours for doctors without a weekly schedule
        """
        self.base_url = base_url.rstrip("/")
        self.timezone = timezone
        self.slot_minutes = slot_minutes
        self.default_hours = default_hours or default_working_hours(timezone)
        self.timeout = timeout
        self.headers = {"Accept": "application/json"}
        if access_token:
            self.headers["Authorization"] = f"Bearer {access_token}"

    def list_doctors(self) -> List[Doctor]:
        data = self._get("/users/doctors")
        doctors = []

        for payload in data.get("doctors", []):
            try:
                doctors.append(doctor_from_payload(payload))
            except ValueError as exc:
                logger.warning("Skipping doctor entry: %s", exc)

        return doctors

    def get_availability(self, doctor_id: str, day: date) -> DoctorAvailability:
        """
        Fetch the doctor's window and booked slots for ``day``.

        Raises:
            AvailabilityError: If a request fails or the payload is unusable
        """
        doctor = self._get(f"/users/doctors/{doctor_id}").get("doctor")
        if not doctor:
            raise AvailabilityError(f"Doctor {doctor_id} not found")

        try:
            working_hours = working_hours_from_weekly(doctor.get("availability"), self.default_hours)
        except ValueError as exc:
            raise AvailabilityError(f"Invalid availability for doctor {doctor_id}: {exc}") from exc

        window = working_hours.get_working_hours_for_day(day)

        booked = self._get(
            f"/appointments/availability/{doctor_id}",
            params={"date": day.isoformat()},
        ).get("bookedSlots", [])

        return DoctorAvailability(
            doctor_id=doctor_id,
            date=day,
            windows=[window] if window else [],
            busy=self._parse_booked(day, booked),
            slot_minutes=self.slot_minutes,
        )

    def _parse_booked(self, day: date, booked: List[Dict[str, Any]]) -> List[TimeRange]:
        busy: List[TimeRange] = []

        for item in booked:
            try:
                busy.append(busy_range(day, item, self.timezone, self.slot_minutes))
            except (KeyError, ValueError) as exc:
                logger.warning("Could not parse booked slot %r: %s", item, exc)

        return busy

    def _get(self, path: str, params: Dict[str, str] | None = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"

        try:
            response = requests.get(url, headers=self.headers, params=params, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.RequestException as exc:
            raise AvailabilityError(f"Request to {url} failed: {exc}") from exc
        except ValueError as exc:
            raise AvailabilityError(f"Invalid JSON from {url}: {exc}") from exc

        if not isinstance(body, dict) or not body.get("success", False):
            message = body.get("message") if isinstance(body, dict) else None
            raise AvailabilityError(f"API call to {url} was not successful: {message or 'no details'}")

        return body.get("data") or {}
