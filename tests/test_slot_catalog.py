"""
Tests for the slot catalog.
"""

from datetime import date, time

import pendulum
import pytest

from slotreservation.adapters.memory_store import InMemoryReservationStore
from slotreservation.adapters.mock_availability import MockAvailabilityProvider
from slotreservation.domain.exceptions import AvailabilityError, InvalidSlotRequestError, SlotBusyError
from slotreservation.domain.models import SlotKey
from slotreservation.services.ledger import ReservationLedger
from slotreservation.services.slot_catalog import SlotCatalog

MONDAY = date(2024, 6, 3)
SUNDAY_MORNING = pendulum.datetime(2024, 6, 2, 8, 0, tz="UTC")


def _build_catalog():
    ledger = ReservationLedger(InMemoryReservationStore())
    catalog = SlotCatalog(
        availability_provider=MockAvailabilityProvider(),
        ledger=ledger,
        timezone="UTC",
        horizon_days=90,
        lead_time_minutes=30,
    )
    return catalog, ledger


def _times(keys):
    return [key.start_time.strftime("%H:%M") for key in keys]


class TestAvailableSlots:
    """Tests for listing free slots."""

    def test_breaks_blocks_and_bookings_are_excluded(self):
        catalog, _ = _build_catalog()

        slots = catalog.available_slots("doc-perera", MONDAY, SUNDAY_MORNING)
        times = _times(slots)

        assert len(slots) == 23
        assert times[0] == "09:00"
        assert "09:30" not in times  # booked
        assert "12:45" not in times  # break
        assert "14:15" not in times  # blocked
        assert times == sorted(times)

    def test_held_slots_are_hidden(self):
        catalog, ledger = _build_catalog()
        key = SlotKey("doc-perera", MONDAY, time(9, 0))
        ledger.try_hold(key, "patient-A", SUNDAY_MORNING)

        slots = catalog.available_slots("doc-perera", MONDAY, SUNDAY_MORNING)

        assert key not in slots
        assert len(slots) == 22

    def test_expired_holds_reappear_without_sweep(self):
        catalog, ledger = _build_catalog()
        key = SlotKey("doc-perera", MONDAY, time(9, 0))
        ledger.try_hold(key, "patient-A", SUNDAY_MORNING)

        slots = catalog.available_slots("doc-perera", MONDAY, SUNDAY_MORNING.add(minutes=10))

        assert key in slots

    def test_today_respects_lead_time(self):
        catalog, _ = _build_catalog()
        now = pendulum.datetime(2024, 6, 3, 10, 5, tz="UTC")

        times = _times(catalog.available_slots("doc-perera", MONDAY, now))

        assert times[0] == "10:45"

    def test_doctor_without_weekly_schedule_uses_defaults(self):
        catalog, _ = _build_catalog()

        slots = catalog.available_slots("doc-jayasuriya", MONDAY, SUNDAY_MORNING)

        assert len(slots) == 28  # 09:00-17:00 minus the 12:00-13:00 break

    def test_day_off_has_no_slots(self):
        catalog, _ = _build_catalog()

        assert catalog.available_slots("doc-fernando", date(2024, 6, 4), SUNDAY_MORNING) == []

    def test_unknown_doctor(self):
        catalog, _ = _build_catalog()

        with pytest.raises(AvailabilityError, match="Unknown doctor"):
            catalog.available_slots("doc-nobody", MONDAY, SUNDAY_MORNING)


class TestDateValidation:
    """Tests for the booking horizon."""

    def test_past_date(self):
        catalog, _ = _build_catalog()

        with pytest.raises(InvalidSlotRequestError, match="in the past"):
            catalog.validate_date(date(2024, 6, 1), SUNDAY_MORNING)

    def test_horizon_is_inclusive(self):
        catalog, _ = _build_catalog()

        catalog.validate_date(date(2024, 8, 31), SUNDAY_MORNING)

        with pytest.raises(InvalidSlotRequestError, match="beyond the booking horizon"):
            catalog.validate_date(date(2024, 9, 1), SUNDAY_MORNING)

    def test_today_uses_catalog_timezone(self):
        """Late evening UTC is already tomorrow in Colombo."""
        ledger = ReservationLedger(InMemoryReservationStore())
        catalog = SlotCatalog(
            MockAvailabilityProvider(timezone="Asia/Colombo"),
            ledger,
            timezone="Asia/Colombo",
        )
        now = pendulum.datetime(2024, 6, 2, 20, 0, tz="UTC")

        with pytest.raises(InvalidSlotRequestError):
            catalog.validate_date(date(2024, 6, 2), now)


class TestSlotValidation:
    """Tests for checking a requested key before holding it."""

    def test_valid_slot(self):
        catalog, _ = _build_catalog()

        catalog.validate_slot(SlotKey("doc-perera", MONDAY, time(9, 15)), SUNDAY_MORNING)

    @pytest.mark.parametrize("start", [time(9, 10), time(18, 0), time(8, 45)])
    def test_off_grid_or_outside_hours(self, start):
        catalog, _ = _build_catalog()

        with pytest.raises(InvalidSlotRequestError, match="not a bookable slot"):
            catalog.validate_slot(SlotKey("doc-perera", MONDAY, start), SUNDAY_MORNING)

    def test_closed_day(self):
        catalog, _ = _build_catalog()

        with pytest.raises(InvalidSlotRequestError):
            catalog.validate_slot(SlotKey("doc-perera", date(2024, 6, 9), time(9, 0)), SUNDAY_MORNING)

    def test_too_soon(self):
        catalog, _ = _build_catalog()
        now = pendulum.datetime(2024, 6, 3, 8, 45, tz="UTC")

        with pytest.raises(InvalidSlotRequestError, match="less than 30 minutes"):
            catalog.validate_slot(SlotKey("doc-perera", MONDAY, time(9, 0)), now)

    def test_externally_booked(self):
        catalog, _ = _build_catalog()

        with pytest.raises(SlotBusyError):
            catalog.validate_slot(SlotKey("doc-perera", MONDAY, time(9, 30)), SUNDAY_MORNING)
