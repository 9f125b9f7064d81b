"""
In-process reservation store backing the ledger's live index.
"""

import threading
from typing import Dict, List, Optional

from ..domain.models import Reservation, SlotKey


class InMemoryReservationStore:
    """
    Dict-backed store of live reservations keyed by slot.

    The ledger serializes access per key; the internal lock only keeps the
    dict itself consistent while different keys are written concurrently.
    """

    def __init__(self):
        self._records: Dict[SlotKey, Reservation] = {}
        self._lock = threading.Lock()

    def get(self, slot_key: SlotKey) -> Optional[Reservation]:
        with self._lock:
            return self._records.get(slot_key)

    def put(self, reservation: Reservation) -> None:
        with self._lock:
            self._records[reservation.slot_key] = reservation

    def delete(self, slot_key: SlotKey) -> None:
        with self._lock:
            self._records.pop(slot_key, None)

    def scan(self) -> List[Reservation]:
        """Snapshot of all live records."""
        with self._lock:
            return list(self._records.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
