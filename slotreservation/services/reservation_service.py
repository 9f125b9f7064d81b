"""
Application service used by the booking UI and checkout flow.

The service orchestrates the catalog, the ledger and the booking store. Every
public operation returns either its success value or a typed failure from
``domain.outcomes``; nothing here raises for contention, expiry or bad input,
so callers can branch deterministically.
"""

from __future__ import annotations

import logging
from datetime import date, time
from typing import Any, List, Mapping, Optional, Protocol

from pendulum import DateTime
from pydantic import ValidationError

from ..clock import Clock
from ..domain.exceptions import (
    AvailabilityError,
    BookingStoreError,
    InvalidSlotRequestError,
    SlotBusyError,
    StorageError,
)
from ..domain.models import (
    BookingDetails,
    BookingRecord,
    Reservation,
    ReservationHandle,
    ReservationState,
    SlotKey,
)
from ..domain.outcomes import (
    Conflict,
    ConflictReason,
    InvalidSlotRequest,
    ReservationExpired,
    ReservationFailure,
    SlotUnavailable,
    StorageFault,
    VersionMismatch,
)
from .events import EventBus, ReservationConfirmed, SlotFreed, SlotHeld
from .ledger import ReservationLedger
from .slot_catalog import SlotCatalog

logger = logging.getLogger(__name__)


class BookingStoreProtocol(Protocol):
    """Protocol describing the durable appointment store."""

    def create_booking(
        self,
        slot_key: SlotKey,
        holder_id: str,
        reservation_id: str,
        details: BookingDetails,
        confirmed_at: DateTime,
    ) -> BookingRecord:
        """Create the appointment, or return it if this holder already has it."""

    def get_booking(self, slot_key: SlotKey) -> Optional[BookingRecord]:
        """Return the booking for the slot, if any."""


class ReservationService:
    """
    Public reserve / confirm / release / extend operations.

    All collaborators are injected so tests and the CLI can assemble their
    own instance; there is no module-level service.
    """

    def __init__(
        self,
        ledger: ReservationLedger,
        catalog: SlotCatalog,
        booking_store: BookingStoreProtocol,
        clock: Clock,
        events: EventBus | None = None,
        *,
        retry_version_mismatch: bool = True,
    ) -> None:
        self._ledger = ledger
        self._catalog = catalog
        self._booking_store = booking_store
        self._clock = clock
        self._events = events or EventBus()
        self._retry_version_mismatch = retry_version_mismatch

    @property
    def events(self) -> EventBus:
        return self._events

    def available_slots(self, doctor_id: str, day: date) -> List[SlotKey] | InvalidSlotRequest | StorageFault:
        """Free slots for the doctor's day, freshly computed."""
        now = self._clock.now()
        try:
            return self._catalog.available_slots(doctor_id, day, now)
        except InvalidSlotRequestError as exc:
            return InvalidSlotRequest(message=str(exc))
        except (AvailabilityError, StorageError) as exc:
            return self._storage_fault("available_slots", exc)

    def reserve_slot(
        self,
        doctor_id: str,
        day: str | date,
        start_time: str | time,
        holder_id: str,
    ) -> ReservationHandle | SlotUnavailable | InvalidSlotRequest | StorageFault:
        """
        Hold a slot for the hold duration.

        A holder asking again for a slot it already holds gets its existing
        handle back.
        """
        if not holder_id or not holder_id.strip():
            return InvalidSlotRequest(message="holder_id is required")

        try:
            slot_key = SlotKey.parse(doctor_id, day, start_time)
        except ValueError as exc:
            return InvalidSlotRequest(message=f"Invalid slot request: {exc}")

        now = self._clock.now()
        try:
            self._catalog.validate_slot(slot_key, now)
            result = self._ledger.try_hold(slot_key, holder_id, now)
        except InvalidSlotRequestError as exc:
            return InvalidSlotRequest(message=str(exc))
        except SlotBusyError as exc:
            return SlotUnavailable(message=str(exc), slot_key=slot_key, state=ReservationState.CONFIRMED)
        except (AvailabilityError, StorageError) as exc:
            return self._storage_fault("reserve_slot", exc)

        if isinstance(result, Conflict):
            current = result.current
            if (
                current is not None
                and current.holder_id == holder_id
                and current.state is ReservationState.HELD
            ):
                return current.to_handle()

            logger.debug("Reserve of %s by %s refused: %s", slot_key, holder_id, result.reason.value)
            return SlotUnavailable(
                message=(
                    "This slot is currently being booked by another patient. "
                    "Please select a different time."
                ),
                slot_key=slot_key,
                state=result.current_state,
            )

        logger.info("Reserved %s for %s until %s", slot_key, holder_id, result.expires_at)
        self._events.publish(
            SlotHeld(slot_key=slot_key, holder_id=holder_id, expires_at=result.expires_at)
        )
        return result.to_handle()

    def confirm_reservation(
        self,
        handle: ReservationHandle,
        details: BookingDetails | Mapping[str, Any] | None = None,
    ) -> BookingRecord | ReservationExpired | VersionMismatch | InvalidSlotRequest | StorageFault:
        """
        Turn the hold into a booking.

        Confirming the same handle again returns the same ``BookingRecord``.
        If the booking store fails after the ledger committed, a retry
        completes the hand-off without creating a second booking.
        """
        try:
            booking_details = self._coerce_details(details)
        except ValidationError as exc:
            return InvalidSlotRequest(message=f"Invalid booking details: {exc}")

        now = self._clock.now()
        try:
            result = self._transition(handle, ReservationState.CONFIRMED, now)
        except StorageError as exc:
            return self._storage_fault("confirm_reservation", exc)

        if isinstance(result, Conflict):
            if not self._is_confirmed(result):
                return self._failure_for(result, handle)
            reservation = result.current
        else:
            reservation = result

        try:
            first_confirmation = self._booking_store.get_booking(reservation.slot_key) is None
            booking = self._booking_store.create_booking(
                slot_key=reservation.slot_key,
                holder_id=reservation.holder_id,
                reservation_id=reservation.reservation_id,
                details=booking_details,
                confirmed_at=now,
            )
        except BookingStoreError as exc:
            return self._storage_fault("confirm_reservation", exc)

        if first_confirmation:
            logger.info("Confirmed %s for %s as %s", reservation.slot_key, reservation.holder_id, booking.booking_id)
            self._events.publish(
                ReservationConfirmed(
                    slot_key=reservation.slot_key,
                    holder_id=reservation.holder_id,
                    booking_id=booking.booking_id,
                )
            )
        return booking

    def release_reservation(self, handle: ReservationHandle) -> Reservation | None | VersionMismatch | StorageFault:
        """
        Give the slot back. Idempotent.

        Returns the released record, or None when there was nothing of this
        hold left to release (already released, expired, confirmed, or the key
        now belongs to somebody else). A retryable ``VersionMismatch`` means
        the slot was busy and the hold may still be in place.
        """
        now = self._clock.now()
        try:
            result = self._transition(handle, ReservationState.RELEASED, now)
        except StorageError as exc:
            return self._storage_fault("release_reservation", exc)

        if isinstance(result, Conflict):
            if result.reason is ConflictReason.LOCK_TIMEOUT:
                logger.warning("Release of %s timed out waiting for the slot", handle.slot_key)
                return self._failure_for(result, handle)
            logger.debug("Nothing to release for %s: %s", handle.slot_key, result.reason.value)
            return None

        logger.info("Released %s held by %s", handle.slot_key, handle.holder_id)
        self._events.publish(SlotFreed(slot_key=handle.slot_key, reason="released"))
        return result

    def extend_reservation(
        self, handle: ReservationHandle
    ) -> ReservationHandle | ReservationExpired | VersionMismatch | StorageFault:
        """Re-arm the hold window from now. Version-gated like any transition."""
        now = self._clock.now()
        try:
            result = self._transition(handle, ReservationState.HELD, now)
        except StorageError as exc:
            return self._storage_fault("extend_reservation", exc)

        if isinstance(result, Conflict):
            if self._is_confirmed(result):
                return result.current.to_handle()
            return self._failure_for(result, handle)

        logger.info("Extended hold on %s until %s", handle.slot_key, result.expires_at)
        return result.to_handle()

    def remaining_seconds(self, handle: ReservationHandle) -> int:
        """Countdown shown next to the held slot."""
        return handle.remaining_seconds(self._clock.now())

    def lookup(self, handle: ReservationHandle) -> Optional[Reservation]:
        """Current record of the handle's hold, live or archived."""
        current = self._ledger.get(handle.slot_key)
        if current is not None and current.belongs_to(handle.holder_id, handle.reservation_id):
            return current
        return self._ledger.archived(handle.reservation_id)

    def _transition(
        self,
        handle: ReservationHandle,
        target_state: ReservationState,
        now: DateTime,
    ) -> Reservation | Conflict:
        result = self._ledger.transition(
            handle.slot_key,
            handle.holder_id,
            handle.version,
            target_state,
            now,
            reservation_id=handle.reservation_id,
        )

        if (
            self._retry_version_mismatch
            and isinstance(result, Conflict)
            and result.reason is ConflictReason.VERSION_MISMATCH
            and result.current is not None
            and result.current.state is ReservationState.HELD
        ):
            logger.debug(
                "Version mismatch on %s (handle v%d, ledger v%d), retrying once",
                handle.slot_key,
                handle.version,
                result.current.version,
            )
            result = self._ledger.transition(
                handle.slot_key,
                handle.holder_id,
                result.current.version,
                target_state,
                now,
                reservation_id=handle.reservation_id,
            )

        if isinstance(result, Conflict) and result.reason is ConflictReason.EXPIRED:
            self._events.publish(SlotFreed(slot_key=handle.slot_key, reason="expired"))

        return result

    @staticmethod
    def _is_confirmed(conflict: Conflict) -> bool:
        """True if the handle's reservation is confirmed, live or already archived."""
        if conflict.reason is ConflictReason.ALREADY_CONFIRMED:
            return True
        return conflict.reason is ConflictReason.NOT_FOUND and conflict.current_state is ReservationState.CONFIRMED

    def _failure_for(self, conflict: Conflict, handle: ReservationHandle) -> ReservationFailure:
        slot_key = handle.slot_key
        reason = conflict.reason

        if reason is ConflictReason.EXPIRED:
            return ReservationExpired(
                message=f"Your reservation for {slot_key} expired. Please select again.",
                slot_key=slot_key,
            )

        if reason is ConflictReason.NOT_FOUND:
            if conflict.current_state is ReservationState.RELEASED:
                message = f"Your reservation for {slot_key} was released. Please select again."
            else:
                message = f"Your reservation for {slot_key} expired. Please select again."
            return ReservationExpired(message=message, slot_key=slot_key)

        if reason is ConflictReason.HOLDER_MISMATCH:
            return ReservationExpired(
                message=f"Your reservation for {slot_key} ended and the slot was taken by another patient.",
                slot_key=slot_key,
                slot_taken=True,
            )

        if reason is ConflictReason.LOCK_TIMEOUT:
            return VersionMismatch(
                message=f"{slot_key} is busy right now, please try again.",
                slot_key=slot_key,
                expected_version=handle.version,
            )

        return VersionMismatch(
            message=f"Reservation for {slot_key} changed concurrently.",
            slot_key=slot_key,
            expected_version=handle.version,
            actual_version=conflict.current.version if conflict.current else None,
        )

    def _storage_fault(self, operation: str, exc: Exception) -> StorageFault:
        logger.error("Storage failure during %s: %s", operation, exc, exc_info=exc)
        return StorageFault(message=str(exc), operation=operation)

    @staticmethod
    def _coerce_details(details: BookingDetails | Mapping[str, Any] | None) -> BookingDetails:
        if details is None:
            return BookingDetails()
        if isinstance(details, BookingDetails):
            return details
        return BookingDetails.model_validate(dict(details))
