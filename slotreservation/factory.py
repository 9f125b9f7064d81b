"""
Assembly of a reservation system from configuration.

Each caller builds its own instance and passes it on explicitly; nothing here
is a process-wide singleton.
"""

from dataclasses import dataclass

from .adapters.booking_store import InMemoryBookingStore
from .adapters.http_availability import HttpAvailabilityProvider
from .adapters.memory_store import InMemoryReservationStore
from .adapters.mock_availability import MockAvailabilityProvider
from .clock import Clock, SystemClock
from .config import AppConfig
from .domain.models import WorkingHours
from .services.events import EventBus
from .services.expiry_sweeper import ExpirySweeper
from .services.ledger import ReservationLedger
from .services.reservation_service import BookingStoreProtocol, ReservationService
from .services.slot_catalog import AvailabilityProviderProtocol, SlotCatalog


@dataclass
class ReservationSystem:
    """The wired-up components sharing one ledger."""
    service: ReservationService
    sweeper: ExpirySweeper
    ledger: ReservationLedger
    catalog: SlotCatalog
    events: EventBus
    provider: AvailabilityProviderProtocol
    booking_store: BookingStoreProtocol
    clock: Clock


def build_provider(config: AppConfig, mock: bool = False) -> AvailabilityProviderProtocol:
    """HTTP provider when a base URL is configured and mock mode is off, else mock data."""
    default_hours = WorkingHours(
        start_time=config.catalog.get_start_time(),
        end_time=config.catalog.get_end_time(),
        exclude_weekdays=config.catalog.exclude_days,
        timezone=config.timezone,
    )

    if config.availability.base_url and not mock:
        return HttpAvailabilityProvider(
            base_url=config.availability.base_url,
            timezone=config.timezone,
            slot_minutes=config.catalog.slot_minutes,
            timeout=config.availability.timeout_seconds,
            access_token=config.availability.access_token,
            default_hours=default_hours,
        )

    return MockAvailabilityProvider(
        data_file=config.availability.mock_data_file,
        timezone=config.timezone,
        slot_minutes=config.catalog.slot_minutes,
        default_hours=default_hours,
    )


def build_system(
    config: AppConfig,
    provider: AvailabilityProviderProtocol | None = None,
    clock: Clock | None = None,
    booking_store: BookingStoreProtocol | None = None,
    *,
    mock: bool = False,
) -> ReservationSystem:
    """Wire catalog, ledger, service and sweeper according to ``config``."""
    clock = clock or SystemClock(config.timezone)
    provider = provider or build_provider(config, mock=mock)
    booking_store = booking_store or InMemoryBookingStore()
    events = EventBus()

    ledger = ReservationLedger(
        store=InMemoryReservationStore(),
        hold_duration=config.reservation.hold_duration(),
        lock_timeout=config.reservation.lock_timeout_seconds,
        archive_limit=config.reservation.archive_limit,
    )
    catalog = SlotCatalog(
        availability_provider=provider,
        ledger=ledger,
        timezone=config.timezone,
        horizon_days=config.catalog.horizon_days,
        lead_time_minutes=config.catalog.lead_time_minutes,
    )
    service = ReservationService(
        ledger=ledger,
        catalog=catalog,
        booking_store=booking_store,
        clock=clock,
        events=events,
    )
    sweeper = ExpirySweeper(
        ledger=ledger,
        clock=clock,
        events=events,
        interval_seconds=config.sweeper.interval_seconds,
        warning_seconds=config.reservation.expiring_soon_seconds,
    )

    return ReservationSystem(
        service=service,
        sweeper=sweeper,
        ledger=ledger,
        catalog=catalog,
        events=events,
        provider=provider,
        booking_store=booking_store,
        clock=clock,
    )
