"""
The reservation ledger: sole writer of hold records.

Every operation on a slot runs inside that slot's critical section and
compares timestamps against the single ``now`` handed in by the caller, so
``try_hold``, ``transition`` and expiry eviction are linearizable per key.
Operations on different keys never wait for each other.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import OrderedDict
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from typing import Dict, Iterator, List, Optional, Protocol, Set

from pendulum import DateTime

from ..domain.exceptions import StorageError
from ..domain.models import Reservation, ReservationState, SlotKey
from ..domain.outcomes import Conflict, ConflictReason

logger = logging.getLogger(__name__)


class ReservationStore(Protocol):
    """Storage of live reservations, one record per slot key."""

    def get(self, slot_key: SlotKey) -> Optional[Reservation]:
        """Return the live record for the key, if any."""

    def put(self, reservation: Reservation) -> None:
        """Insert or replace the record for ``reservation.slot_key``."""

    def delete(self, slot_key: SlotKey) -> None:
        """Remove the record for the key."""

    def scan(self) -> List[Reservation]:
        """Snapshot of all live records."""


@dataclass
class _KeyLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class KeyLockRegistry:
    """
    One lock per slot key, created on demand and dropped when unused.

    Reference counting keeps the registry bounded by the number of keys that
    are being operated on right now rather than every key ever seen.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._entries: Dict[SlotKey, _KeyLock] = {}

    @contextmanager
    def acquire(self, slot_key: SlotKey, timeout: float) -> Iterator[bool]:
        """Yield True if the key's lock was acquired within ``timeout`` seconds."""
        with self._guard:
            entry = self._entries.get(slot_key)
            if entry is None:
                entry = self._entries[slot_key] = _KeyLock()
            entry.users += 1

        acquired = entry.lock.acquire(timeout=timeout)
        try:
            yield acquired
        finally:
            if acquired:
                entry.lock.release()
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[slot_key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


class ReservationLedger:
    """
    Authoritative store of holds enforcing one live reservation per slot.

    ``Conflict`` is returned, never raised. ``StorageError`` from the store
    propagates unchanged; the record being written is only replaced by a
    single ``put``/``delete``, so a failed write leaves the live index as it
    was.
    """

    TRANSITION_TARGETS = (
        ReservationState.HELD,
        ReservationState.CONFIRMED,
        ReservationState.RELEASED,
    )

    def __init__(
        self,
        store: ReservationStore,
        hold_duration: timedelta = timedelta(minutes=10),
        lock_timeout: float = 2.0,
        archive_limit: int = 1000,
    ) -> None:
        if hold_duration.total_seconds() <= 0:
            raise ValueError("hold_duration must be positive")
        if lock_timeout <= 0:
            raise ValueError("lock_timeout must be positive")

        self._store = store
        self._hold_duration = hold_duration
        self._lock_timeout = lock_timeout
        self._locks = KeyLockRegistry()
        self._archive: "OrderedDict[str, Reservation]" = OrderedDict()
        self._archive_limit = archive_limit
        self._archive_lock = threading.Lock()

    @property
    def hold_duration(self) -> timedelta:
        return self._hold_duration

    def try_hold(self, slot_key: SlotKey, holder_id: str, now: DateTime) -> Reservation | Conflict:
        """
        Atomically claim a free slot.

        Returns the new ``held`` reservation, or a ``Conflict`` naming the
        live record that occupies the slot. Never overwrites a live record.
        """
        if not holder_id:
            raise ValueError("holder_id must not be empty")

        with self._locks.acquire(slot_key, self._lock_timeout) as acquired:
            if not acquired:
                logger.debug("Lock wait timed out for %s", slot_key)
                return Conflict(slot_key=slot_key, reason=ConflictReason.LOCK_TIMEOUT)

            current = self._load_live(slot_key, now)
            if current is not None:
                return Conflict(slot_key=slot_key, reason=ConflictReason.OCCUPIED, current=current)

            reservation = Reservation(
                reservation_id=uuid.uuid4().hex,
                slot_key=slot_key,
                holder_id=holder_id,
                state=ReservationState.HELD,
                created_at=now,
                held_at=now,
                expires_at=now + self._hold_duration,
            )
            self._store.put(reservation)

        logger.debug("Held %s for %s until %s", slot_key, holder_id, reservation.expires_at)
        return reservation

    def transition(
        self,
        slot_key: SlotKey,
        holder_id: str,
        expected_version: int,
        target_state: ReservationState,
        now: DateTime,
        reservation_id: str | None = None,
    ) -> Reservation | Conflict:
        """
        Compare-and-swap the live reservation into ``target_state``.

        Proceeds only if the live record belongs to ``holder_id`` (and
        ``reservation_id`` when given), is still within its hold window and
        carries ``expected_version``. Targets:

        - ``CONFIRMED``: held -> confirmed, expiry cleared
        - ``RELEASED``: held -> released, removed from the live index
        - ``HELD``: re-arms the hold window (extension)
        """
        if target_state not in self.TRANSITION_TARGETS:
            raise ValueError(f"Unsupported transition target: {target_state}")

        with self._locks.acquire(slot_key, self._lock_timeout) as acquired:
            if not acquired:
                logger.debug("Lock wait timed out for %s", slot_key)
                return Conflict(slot_key=slot_key, reason=ConflictReason.LOCK_TIMEOUT)

            current = self._store.get(slot_key)

            if current is None:
                return Conflict(
                    slot_key=slot_key,
                    reason=ConflictReason.NOT_FOUND,
                    current=self.archived(reservation_id) if reservation_id else None,
                )

            if not current.belongs_to(holder_id, reservation_id):
                return Conflict(slot_key=slot_key, reason=ConflictReason.HOLDER_MISMATCH, current=current)

            if current.state is ReservationState.CONFIRMED:
                return Conflict(slot_key=slot_key, reason=ConflictReason.ALREADY_CONFIRMED, current=current)

            if current.is_expired(now):
                expired = self._close(current, ReservationState.EXPIRED, now)
                return Conflict(slot_key=slot_key, reason=ConflictReason.EXPIRED, current=expired)

            if current.version != expected_version:
                return Conflict(slot_key=slot_key, reason=ConflictReason.VERSION_MISMATCH, current=current)

            if target_state is ReservationState.RELEASED:
                updated = self._close(current, ReservationState.RELEASED, now)
            elif target_state is ReservationState.CONFIRMED:
                updated = replace(
                    current,
                    state=ReservationState.CONFIRMED,
                    expires_at=None,
                    version=current.version + 1,
                )
                self._store.put(updated)
            else:
                updated = replace(
                    current,
                    held_at=now,
                    expires_at=now + self._hold_duration,
                    version=current.version + 1,
                    extensions=current.extensions + 1,
                )
                self._store.put(updated)

        logger.debug("%s: %s -> %s (v%d)", slot_key, current.state.value, updated.state.value, updated.version)
        return updated

    def sweep_expired(self, now: DateTime) -> List[SlotKey]:
        """
        Evict every hold whose ``expires_at <= now``.

        Candidates come from an unlocked snapshot and are re-checked under
        their key lock, so a confirmation that committed first always wins.
        Keys whose lock is busy are left for the next sweep.
        """
        candidates = [record.slot_key for record in self._store.scan() if record.is_expired(now)]
        freed: List[SlotKey] = []

        for slot_key in candidates:
            with self._locks.acquire(slot_key, self._lock_timeout) as acquired:
                if not acquired:
                    logger.debug("Skipping busy key %s during sweep", slot_key)
                    continue

                current = self._store.get(slot_key)
                if current is None or not current.is_expired(now):
                    continue

                try:
                    self._close(current, ReservationState.EXPIRED, now)
                except StorageError:
                    logger.exception("Could not evict expired hold on %s", slot_key)
                    continue

                freed.append(slot_key)

        if freed:
            logger.info("Swept %d expired hold(s)", len(freed))
        return freed

    def archive_past(self, now: DateTime) -> List[SlotKey]:
        """
        Move confirmed bookings of days before ``now``'s date to the archive.

        Past days cannot be reserved again, so those records only cost scan
        time in the live index. ``now`` must be in the catalog timezone.
        """
        today = now.date()
        candidates = [
            record.slot_key for record in self._store.scan()
            if record.state is ReservationState.CONFIRMED and record.slot_key.date < today
        ]
        archived: List[SlotKey] = []

        for slot_key in candidates:
            with self._locks.acquire(slot_key, self._lock_timeout) as acquired:
                if not acquired:
                    continue

                current = self._store.get(slot_key)
                if current is None or current.state is not ReservationState.CONFIRMED:
                    continue

                try:
                    self._close(current, ReservationState.CONFIRMED, now)
                except StorageError:
                    logger.exception("Could not archive past booking on %s", slot_key)
                    continue

                archived.append(slot_key)

        if archived:
            logger.info("Archived %d past booking(s)", len(archived))
        return archived

    def get(self, slot_key: SlotKey) -> Optional[Reservation]:
        """Raw live record for the key, expired or not."""
        return self._store.get(slot_key)

    def live_keys(self, doctor_id: str, day: date, now: DateTime) -> Set[SlotKey]:
        """Keys of the doctor's day that are confirmed or held past ``now``."""
        return {
            record.slot_key
            for record in self._store.scan()
            if record.slot_key.doctor_id == doctor_id
            and record.slot_key.date == day
            and record.is_live
            and not record.is_expired(now)
        }

    def expiring_between(self, start: DateTime, end: DateTime) -> List[Reservation]:
        """Holds whose expiry falls in ``(start, end]``."""
        return sorted(
            (
                record for record in self._store.scan()
                if record.state is ReservationState.HELD
                and record.expires_at is not None
                and start < record.expires_at <= end
            ),
            key=lambda record: record.expires_at,
        )

    def archived(self, reservation_id: str) -> Optional[Reservation]:
        """Final record of a released or expired hold, while still retained."""
        with self._archive_lock:
            return self._archive.get(reservation_id)

    def history(self) -> List[Reservation]:
        """Archived records, oldest first."""
        with self._archive_lock:
            return list(self._archive.values())

    def _load_live(self, slot_key: SlotKey, now: DateTime) -> Optional[Reservation]:
        current = self._store.get(slot_key)
        if current is not None and current.is_expired(now):
            self._close(current, ReservationState.EXPIRED, now)
            return None
        return current

    def _close(self, record: Reservation, state: ReservationState, now: DateTime) -> Reservation:
        closed = replace(record, state=state, version=record.version + 1, closed_at=now)
        self._store.delete(record.slot_key)

        with self._archive_lock:
            self._archive[closed.reservation_id] = closed
            while len(self._archive) > self._archive_limit:
                self._archive.popitem(last=False)

        return closed
