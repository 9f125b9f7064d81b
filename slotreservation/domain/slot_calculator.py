"""
Core business logic for laying out bookable slots on a doctor's day.

Pure domain logic without any external dependencies (no API calls, no
database, no I/O). The catalog feeds it availability and filters the result
against the reservation ledger.
"""

from typing import List

from pendulum import DateTime

from .models import DoctorAvailability, TimeRange


class SlotCalculator:
    """
    Calculates fixed-width appointment slots from working hours and busy times.

    Algorithm:
    1. Merge the doctor's working windows for the day
    2. Cut each window into fixed-width slots aligned to the window start
    3. Invert busy times to free times within the windows
    4. Keep slots that lie completely inside a free range
    5. Drop slots starting before the earliest bookable moment
    """

    def grid_slots(self, availability: DoctorAvailability) -> List[TimeRange]:
        """
        All slots of the day, ignoring busy times.

        A trailing remainder shorter than one slot is not offered.
        """
        if availability.slot_minutes <= 0:
            raise ValueError(f"slot_minutes must be positive, got {availability.slot_minutes}")

        slots: List[TimeRange] = []

        for window in self._merge_adjacent_ranges(availability.windows):
            current = window.start

            while True:
                slot_end = current.add(minutes=availability.slot_minutes)
                if slot_end > window.end:
                    break
                slots.append(TimeRange(start=current, end=slot_end))
                current = slot_end

        return slots

    def candidate_slots(
        self,
        availability: DoctorAvailability,
        not_before: DateTime | None = None,
    ) -> List[TimeRange]:
        """
        Slots that are free of external bookings and blocks.

        Args:
            availability: The doctor's windows, busy ranges and slot width
            not_before: Earliest allowed slot start (e.g. now + lead time)

        Returns:
            Ordered list of free slots
        """
        windows = self._merge_adjacent_ranges(availability.windows)
        if not windows:
            return []

        free_ranges = self._invert_busy_to_free(
            working_blocks=windows,
            busy_ranges=availability.busy,
        )

        return [
            slot for slot in self.grid_slots(availability)
            if (not_before is None or slot.start >= not_before)
            and any(free.contains(slot) for free in free_ranges)
        ]

    def _invert_busy_to_free(
        self,
        working_blocks: List[TimeRange],
        busy_ranges: List[TimeRange]
    ) -> List[TimeRange]:
        """
        Convert busy times to free times within working hours.

        - Start with working hour blocks (the "universe" of possible time)
        - Subtract all busy times
        - What remains is free time
        """
        free_times: List[TimeRange] = []

        sorted_busy = sorted(busy_ranges, key=lambda r: r.start)

        for working_block in working_blocks:
            overlapping_busy = [
                busy for busy in sorted_busy
                if working_block.overlaps(busy)
            ]

            if not overlapping_busy:
                free_times.append(working_block)
                continue

            free_times.extend(
                self._subtract_busy_from_block(working_block, overlapping_busy)
            )

        return free_times

    def _subtract_busy_from_block(
        self,
        working_block: TimeRange,
        busy_ranges: List[TimeRange]
    ) -> List[TimeRange]:
        """
        Subtract busy times from a working block, yielding free time ranges.

        Example:
        Working: 09:00 - 17:00
        Busy: [10:00-11:00, 14:00-15:00]
        Result: [09:00-10:00, 11:00-14:00, 15:00-17:00]
        """
        free_ranges: List[TimeRange] = []
        current_start = working_block.start

        for busy in sorted(busy_ranges, key=lambda r: r.start):
            clipped_busy_start = max(busy.start, working_block.start)
            clipped_busy_end = min(busy.end, working_block.end)

            if current_start < clipped_busy_start:
                free_ranges.append(
                    TimeRange(start=current_start, end=clipped_busy_start)
                )

            current_start = max(current_start, clipped_busy_end)

        if current_start < working_block.end:
            free_ranges.append(
                TimeRange(start=current_start, end=working_block.end)
            )

        return free_ranges

    def _merge_adjacent_ranges(
        self,
        ranges: List[TimeRange]
    ) -> List[TimeRange]:
        """
        Merge overlapping or adjacent time ranges.

        Example: [09:00-10:00, 10:00-11:00] -> [09:00-11:00]
        """
        if not ranges:
            return []

        sorted_ranges = sorted(ranges, key=lambda r: r.start)
        merged: List[TimeRange] = [sorted_ranges[0]]

        for current in sorted_ranges[1:]:
            last = merged[-1]

            if current.start <= last.end:
                merged[-1] = TimeRange(
                    start=last.start,
                    end=max(last.end, current.end)
                )
            else:
                merged.append(current)

        return merged
