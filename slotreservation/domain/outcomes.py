"""
Typed results returned by the ledger and the reservation service.

Contention is a normal outcome, not a fault: the ledger answers with a
``Conflict`` value and the service translates it into one of the
``ReservationFailure`` subclasses below. Callers branch on the type.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional

from .models import Reservation, ReservationState, SlotKey


class ConflictReason(str, Enum):
    OCCUPIED = "occupied"
    NOT_FOUND = "not_found"
    HOLDER_MISMATCH = "holder_mismatch"
    VERSION_MISMATCH = "version_mismatch"
    EXPIRED = "expired"
    ALREADY_CONFIRMED = "already_confirmed"
    LOCK_TIMEOUT = "lock_timeout"


@dataclass(frozen=True)
class Conflict:
    """
    Ledger answer when an operation could not be applied.

    ``current`` is the record that blocked the operation: the live record for
    the key, or the archived record of the caller's hold once it has ended.
    """
    slot_key: SlotKey
    reason: ConflictReason
    current: Optional[Reservation] = None

    @property
    def current_state(self) -> ReservationState | None:
        return self.current.state if self.current else None


@dataclass(frozen=True)
class ReservationFailure:
    """Base for every failure value a service operation can return."""
    message: str

    retryable: ClassVar[bool] = True


@dataclass(frozen=True)
class SlotUnavailable(ReservationFailure):
    """The slot is held or confirmed by someone else. Pick another slot."""
    slot_key: Optional[SlotKey] = None
    state: Optional[ReservationState] = None


@dataclass(frozen=True)
class ReservationExpired(ReservationFailure):
    """The hold is no longer active. The patient has to reserve again."""
    slot_key: Optional[SlotKey] = None
    slot_taken: bool = False


@dataclass(frozen=True)
class VersionMismatch(ReservationFailure):
    """The caller lost an optimistic-concurrency race. Re-fetch and retry once."""
    slot_key: Optional[SlotKey] = None
    expected_version: Optional[int] = None
    actual_version: Optional[int] = None


@dataclass(frozen=True)
class InvalidSlotRequest(ReservationFailure):
    """Malformed or out-of-horizon request. Not retryable without new input."""
    retryable: ClassVar[bool] = False


@dataclass(frozen=True)
class StorageFault(ReservationFailure):
    """A backing store failed. The operation was not applied."""
    operation: str = ""

    retryable: ClassVar[bool] = False
