"""
Domain models for slots, holds and bookings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Dict, List, Literal, Optional, Tuple

import pendulum
from pendulum import DateTime
from pydantic import BaseModel, field_validator


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another."""
        return self.start < other.end and self.end > other.start

    def contains(self, other: "TimeRange") -> bool:
        """Check if ``other`` lies completely inside this range."""
        return self.start <= other.start and other.end <= self.end

    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('HH:mm')}"


@dataclass
class WorkingHours:
    """
    Weekly working hours of a doctor.

    ``weekday_hours`` overrides the default window for individual weekdays
    (0=Monday, 6=Sunday), e.g. a shorter Saturday clinic.
    """
    start_time: time
    end_time: time
    exclude_weekdays: List[int]
    timezone: str = "UTC"
    weekday_hours: Dict[int, Tuple[time, time]] = field(default_factory=dict)

    def is_working_day(self, day: date) -> bool:
        """Check if a given date falls on a working day."""
        return day.weekday() not in self.exclude_weekdays

    def get_working_hours_for_day(self, day: date) -> TimeRange | None:
        """
        Get the working hours range for a specific day.
        Returns None if it's not a working day.
        """
        if not self.is_working_day(day):
            return None

        start_time, end_time = self.weekday_hours.get(
            day.weekday(), (self.start_time, self.end_time)
        )
        start = pendulum.datetime(
            day.year, day.month, day.day, start_time.hour, start_time.minute, tz=self.timezone
        )
        end = pendulum.datetime(
            day.year, day.month, day.day, end_time.hour, end_time.minute, tz=self.timezone
        )

        return TimeRange(start=start, end=end)


@dataclass(frozen=True)
class Doctor:
    """A bookable doctor as reported by the availability provider."""
    id: str
    name: str
    specialization: str = ""


@dataclass
class DoctorAvailability:
    """
    Everything the catalog needs to lay out one doctor's day.

    ``busy`` holds ranges that are unavailable for reasons outside the ledger:
    appointments booked through other channels and slots the doctor blocked.
    """
    doctor_id: str
    date: date
    windows: List[TimeRange]
    busy: List[TimeRange] = field(default_factory=list)
    slot_minutes: int = 15


@dataclass(frozen=True, order=True)
class SlotKey:
    """
    Composite identity of one bookable interval: (doctor, date, start time).

    Two reservations with the same key are mutually exclusive.
    """
    doctor_id: str
    date: date
    start_time: time

    def __post_init__(self):
        if not self.doctor_id or not self.doctor_id.strip():
            raise ValueError("doctor_id must not be empty")
        if self.start_time.second or self.start_time.microsecond:
            raise ValueError(f"Slot start {self.start_time} must be on a whole minute")
        if self.start_time.tzinfo is not None:
            raise ValueError("Slot start must be a naive wall-clock time")

    @classmethod
    def parse(cls, doctor_id: str, date_value: str | date, time_value: str | time) -> "SlotKey":
        """
        Build a key from request values.

        Args:
            doctor_id: Doctor identifier
            date_value: ``YYYY-MM-DD`` string or date
            time_value: ``HH:MM`` string or time

        Raises:
            ValueError: If any part is malformed
        """
        if isinstance(date_value, str):
            parsed = pendulum.from_format(date_value.strip(), "YYYY-MM-DD")
            date_value = date(parsed.year, parsed.month, parsed.day)
        elif isinstance(date_value, datetime):
            raise ValueError("Expected a date, got a datetime")

        if isinstance(time_value, str):
            parsed = pendulum.from_format(time_value.strip(), "HH:mm")
            time_value = time(parsed.hour, parsed.minute)

        return cls(doctor_id=doctor_id, date=date_value, start_time=time_value)

    def start_datetime(self, timezone: str) -> DateTime:
        """Return the slot start as an aware datetime in ``timezone``."""
        return pendulum.datetime(
            self.date.year,
            self.date.month,
            self.date.day,
            self.start_time.hour,
            self.start_time.minute,
            tz=timezone,
        )

    def __str__(self) -> str:
        return f"{self.doctor_id}@{self.date.isoformat()} {self.start_time.strftime('%H:%M')}"


class ReservationState(str, Enum):
    """Lifecycle states of a reservation."""
    HELD = "held"
    CONFIRMED = "confirmed"
    RELEASED = "released"
    EXPIRED = "expired"

    @property
    def is_live(self) -> bool:
        return self in (ReservationState.HELD, ReservationState.CONFIRMED)

    @property
    def is_terminal(self) -> bool:
        return self in (ReservationState.RELEASED, ReservationState.EXPIRED)


@dataclass(frozen=True)
class Reservation:
    """
    One hold or confirmed booking of a slot.

    Records are never mutated; every transition produces a new record with a
    higher ``version``. For a held record ``expires_at == held_at + hold duration``;
    ``held_at`` equals ``created_at`` until the hold is extended.
    """
    reservation_id: str
    slot_key: SlotKey
    holder_id: str
    state: ReservationState
    created_at: DateTime
    held_at: DateTime
    expires_at: Optional[DateTime]
    version: int = 1
    extensions: int = 0
    closed_at: Optional[DateTime] = None

    @property
    def is_live(self) -> bool:
        return self.state.is_live

    def is_expired(self, now: DateTime) -> bool:
        """A hold is expired once ``now`` reaches ``expires_at``."""
        return (
            self.state is ReservationState.HELD
            and self.expires_at is not None
            and self.expires_at <= now
        )

    def belongs_to(self, holder_id: str, reservation_id: str | None = None) -> bool:
        if self.holder_id != holder_id:
            return False
        return reservation_id is None or self.reservation_id == reservation_id

    def to_handle(self) -> "ReservationHandle":
        return ReservationHandle(
            slot_key=self.slot_key,
            holder_id=self.holder_id,
            reservation_id=self.reservation_id,
            version=self.version,
            expires_at=self.expires_at,
        )


@dataclass(frozen=True)
class ReservationHandle:
    """What the booking UI keeps between checkout steps."""
    slot_key: SlotKey
    holder_id: str
    reservation_id: str
    version: int
    expires_at: Optional[DateTime]

    def remaining_seconds(self, now: DateTime) -> int:
        """Seconds left on the countdown, never negative."""
        if self.expires_at is None:
            return 0
        return max(0, int((self.expires_at - now).total_seconds()))


class BookingDetails(BaseModel):
    """Checkout details collected while the slot is held."""
    appointment_type: Literal["consultation", "follow-up", "check-up", "emergency"] = "consultation"
    reason: str = ""

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, value: str) -> str:
        """Reason for visit must be 10-500 characters when given."""
        value = value.strip()
        if value and len(value) < 10:
            raise ValueError("Reason for visit must be at least 10 characters")
        if len(value) > 500:
            raise ValueError("Reason for visit cannot exceed 500 characters")
        return value


@dataclass(frozen=True)
class BookingRecord:
    """Durable appointment created from a confirmed reservation."""
    booking_id: str
    slot_key: SlotKey
    holder_id: str
    reservation_id: str
    confirmed_at: DateTime
    details: BookingDetails = field(default_factory=BookingDetails)
