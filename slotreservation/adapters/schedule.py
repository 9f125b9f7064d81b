"""
Parsing of the hospital API's doctor schedule payloads.

Both availability adapters speak the same shapes: a weekly ``availability``
map (``{"monday": {"enabled": true, "startTime": "09:00", "endTime": "17:00"}}``)
and booked/blocked entries given as ``HH:MM`` plus an end time or a duration.
"""

from datetime import date, time
from typing import Any, Dict, Mapping

import pendulum

from ..domain.models import Doctor, TimeRange, WorkingHours

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def default_working_hours(timezone: str) -> WorkingHours:
    """09:00-17:00 on every weekday except Sunday."""
    return WorkingHours(
        start_time=time(9, 0),
        end_time=time(17, 0),
        exclude_weekdays=[6],
        timezone=timezone,
    )


def parse_clock_time(value: str) -> time:
    """Parse ``HH:MM``."""
    parsed = pendulum.from_format(value.strip(), "HH:mm")
    return time(parsed.hour, parsed.minute)


def working_hours_from_weekly(
    availability: Mapping[str, Any] | None,
    defaults: WorkingHours,
) -> WorkingHours:
    """
    Build ``WorkingHours`` from a weekly availability map.

    Days that are missing or not ``enabled`` are excluded; enabled days
    without explicit times use the default window. Without any map the
    doctor works ``defaults``.
    """
    if not availability:
        return defaults

    weekday_hours = {}
    excluded = []

    for index, name in enumerate(WEEKDAYS):
        entry = availability.get(name) or {}
        if not entry.get("enabled", False):
            excluded.append(index)
            continue

        start = entry.get("startTime")
        end = entry.get("endTime")
        weekday_hours[index] = (
            parse_clock_time(start) if start else defaults.start_time,
            parse_clock_time(end) if end else defaults.end_time,
        )

    return WorkingHours(
        start_time=defaults.start_time,
        end_time=defaults.end_time,
        exclude_weekdays=excluded,
        timezone=defaults.timezone,
        weekday_hours=weekday_hours,
    )


def busy_range(day: date, entry: Mapping[str, Any], timezone: str, default_minutes: int) -> TimeRange:
    """
    Convert a booked or blocked entry into a ``TimeRange`` on ``day``.

    Accepts ``time``/``startTime`` for the start and ``endTime`` or
    ``duration`` (minutes) for the end.

    Raises:
        KeyError: If no start is given
        ValueError: If a time is malformed or the range is empty
    """
    start_value = entry.get("startTime") or entry["time"]
    start_clock = parse_clock_time(start_value)
    start = pendulum.datetime(day.year, day.month, day.day, start_clock.hour, start_clock.minute, tz=timezone)

    if entry.get("endTime"):
        end_clock = parse_clock_time(entry["endTime"])
        end = pendulum.datetime(day.year, day.month, day.day, end_clock.hour, end_clock.minute, tz=timezone)
    else:
        end = start.add(minutes=int(entry.get("duration") or default_minutes))

    return TimeRange(start=start, end=end)


def doctor_from_payload(payload: Dict[str, Any]) -> Doctor:
    """Map a doctor document (``_id``/``id``, names, specialization) to ``Doctor``."""
    doctor_id = payload.get("_id") or payload.get("id")
    if not doctor_id:
        raise ValueError("Doctor payload without an id")

    name = payload.get("name") or " ".join(
        part for part in (payload.get("firstName"), payload.get("lastName")) if part
    )
    return Doctor(
        id=str(doctor_id),
        name=name or str(doctor_id),
        specialization=payload.get("specialization") or "",
    )
