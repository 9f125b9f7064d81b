"""
Domain layer - Pure business logic without external dependencies.
"""

from .exceptions import (
    AvailabilityError,
    BookingStoreError,
    InvalidSlotRequestError,
    SlotBusyError,
    SlotReservationError,
    StorageError,
)
from .models import (
    BookingDetails,
    BookingRecord,
    Doctor,
    DoctorAvailability,
    Reservation,
    ReservationHandle,
    ReservationState,
    SlotKey,
    TimeRange,
    WorkingHours,
)
from .outcomes import (
    Conflict,
    ConflictReason,
    InvalidSlotRequest,
    ReservationExpired,
    ReservationFailure,
    SlotUnavailable,
    StorageFault,
    VersionMismatch,
)
from .slot_calculator import SlotCalculator

__all__ = [
    "AvailabilityError",
    "BookingDetails",
    "BookingRecord",
    "BookingStoreError",
    "Conflict",
    "ConflictReason",
    "Doctor",
    "DoctorAvailability",
    "InvalidSlotRequest",
    "InvalidSlotRequestError",
    "Reservation",
    "ReservationExpired",
    "ReservationFailure",
    "ReservationHandle",
    "ReservationState",
    "SlotBusyError",
    "SlotCalculator",
    "SlotKey",
    "SlotReservationError",
    "SlotUnavailable",
    "StorageError",
    "StorageFault",
    "TimeRange",
    "VersionMismatch",
    "WorkingHours",
]
