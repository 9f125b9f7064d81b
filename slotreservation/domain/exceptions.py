"""
Domain-specific exception hierarchy for the slot reservation service.

These are raised inside the domain and adapter layers. The service facade
converts them into typed outcome values (see ``outcomes.py``) so callers never
have to catch them.
"""


class SlotReservationError(Exception):
    """Base class for all application-level errors."""


class InvalidSlotRequestError(SlotReservationError):
    """Raised when a date/time is malformed, off-grid or outside the booking horizon."""


class SlotBusyError(SlotReservationError):
    """Raised when an external booking or block already covers the slot."""


class StorageError(SlotReservationError):
    """Raised when the reservation store cannot read or write a record."""


class AvailabilityError(SlotReservationError):
    """Raised when doctor availability cannot be fetched or parsed."""


class BookingStoreError(SlotReservationError):
    """Raised when the durable booking hand-off fails."""
