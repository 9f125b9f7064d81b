"""
Tests for slot calculator.
"""

import pendulum
import pytest
from datetime import date

from slotreservation.domain.models import DoctorAvailability, TimeRange
from slotreservation.domain.slot_calculator import SlotCalculator


def _range(start: str, end: str, tz: str = "Asia/Colombo") -> TimeRange:
    return TimeRange(
        start=pendulum.parse(f"2024-06-03 {start}", tz=tz),
        end=pendulum.parse(f"2024-06-03 {end}", tz=tz),
    )


def _availability(windows, busy=None, slot_minutes=15) -> DoctorAvailability:
    return DoctorAvailability(
        doctor_id="doc-perera",
        date=date(2024, 6, 3),
        windows=windows,
        busy=busy or [],
        slot_minutes=slot_minutes,
    )


class TestSlotCalculator:
    """Tests for SlotCalculator."""

    def test_grid_covers_whole_day(self):
        """09:00-17:00 in 15 minute steps yields 32 slots."""
        calculator = SlotCalculator()

        slots = calculator.grid_slots(_availability([_range("09:00", "17:00")]))

        assert len(slots) == 32
        assert slots[0].start.format("HH:mm") == "09:00"
        assert slots[-1].start.format("HH:mm") == "16:45"
        assert all(slot.duration_minutes() == 15 for slot in slots)

    def test_trailing_remainder_not_offered(self):
        """A window end that is not on the grid drops the partial slot."""
        calculator = SlotCalculator()

        slots = calculator.grid_slots(_availability([_range("09:00", "09:40")]))

        assert [slot.start.format("HH:mm") for slot in slots] == ["09:00", "09:15"]

    def test_adjacent_windows_are_merged(self):
        """Windows meeting end-to-start form one continuous grid."""
        calculator = SlotCalculator()

        slots = calculator.grid_slots(
            _availability([_range("10:00", "10:30"), _range("09:00", "10:00")])
        )

        assert [slot.start.format("HH:mm") for slot in slots] == ["09:00", "09:15", "09:30", "09:45", "10:00", "10:15"]

    def test_find_slots_with_busy_times(self):
        """Slots overlapping a break, a block or a booking are excluded."""
        calculator = SlotCalculator()
        availability = _availability(
            [_range("09:00", "17:00")],
            busy=[
                _range("09:30", "09:45"),  # booked
                _range("12:30", "13:30"),  # break
                _range("14:00", "15:00"),  # blocked
            ],
        )

        slots = calculator.candidate_slots(availability)
        starts = [slot.start.format("HH:mm") for slot in slots]

        assert len(slots) == 32 - 1 - 4 - 4
        assert "09:15" in starts
        assert "09:30" not in starts
        assert "12:30" not in starts
        assert "13:30" in starts
        assert "14:45" not in starts
        assert "15:00" in starts

    def test_partially_overlapping_busy_blocks_slot(self):
        """A busy range covering part of a slot removes the whole slot."""
        calculator = SlotCalculator()
        availability = _availability(
            [_range("09:00", "10:00")],
            busy=[_range("09:20", "09:35")],
        )

        starts = [slot.start.format("HH:mm") for slot in calculator.candidate_slots(availability)]

        assert starts == ["09:00", "09:45"]

    def test_not_before_filters_early_slots(self):
        """Slots starting before the earliest bookable moment are dropped."""
        calculator = SlotCalculator()
        availability = _availability([_range("09:00", "11:00")])

        slots = calculator.candidate_slots(
            availability,
            not_before=pendulum.parse("2024-06-03 10:05", tz="Asia/Colombo"),
        )

        assert [slot.start.format("HH:mm") for slot in slots] == ["10:15", "10:30", "10:45"]

    def test_no_windows_means_no_slots(self):
        """Days off have nothing to offer."""
        calculator = SlotCalculator()

        assert calculator.candidate_slots(_availability([])) == []
        assert calculator.grid_slots(_availability([])) == []

    def test_busy_outside_window_ignored(self):
        """Busy time outside working hours doesn't affect slots."""
        calculator = SlotCalculator()
        availability = _availability(
            [_range("09:00", "10:00")],
            busy=[_range("07:00", "08:30"), _range("18:00", "19:00")],
        )

        assert len(calculator.candidate_slots(availability)) == 4

    def test_invalid_slot_width(self):
        calculator = SlotCalculator()

        with pytest.raises(ValueError, match="slot_minutes must be positive"):
            calculator.grid_slots(_availability([_range("09:00", "10:00")], slot_minutes=0))
