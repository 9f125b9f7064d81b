"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .events import (
    EventBus,
    ReservationConfirmed,
    ReservationEvent,
    ReservationExpiringSoon,
    SlotFreed,
    SlotHeld,
)
from .expiry_sweeper import ExpirySweeper
from .ledger import KeyLockRegistry, ReservationLedger, ReservationStore
from .reservation_service import BookingStoreProtocol, ReservationService
from .slot_catalog import AvailabilityProviderProtocol, SlotCatalog

__all__ = [
    "AvailabilityProviderProtocol",
    "BookingStoreProtocol",
    "EventBus",
    "ExpirySweeper",
    "KeyLockRegistry",
    "ReservationConfirmed",
    "ReservationEvent",
    "ReservationExpiringSoon",
    "ReservationLedger",
    "ReservationService",
    "ReservationStore",
    "SlotCatalog",
    "SlotFreed",
    "SlotHeld",
]
