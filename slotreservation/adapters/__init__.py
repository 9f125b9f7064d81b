"""
Adapters layer - Stores and external integrations (hospital API).
"""

from .booking_store import InMemoryBookingStore
from .http_availability import HttpAvailabilityProvider
from .memory_store import InMemoryReservationStore
from .mock_availability import MockAvailabilityProvider

__all__ = [
    "HttpAvailabilityProvider",
    "InMemoryBookingStore",
    "InMemoryReservationStore",
    "MockAvailabilityProvider",
]
