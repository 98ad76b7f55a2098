"""
Reservation status derivation.

A reservation's status is never trusted from storage: it is recomputed from
its date, start time and duration relative to the current wall-clock time
every time it is read, so reservations move from upcoming to live to past
without any background job.
"""

import re
from datetime import datetime, timedelta
from typing import Optional

from ..state.models import ReservationStatus

# Only these two shapes are recognized
TIME_24H = re.compile(r"^(\d{1,2}):(\d{2})$")
TIME_12H = re.compile(r"^(\d{1,2}):(\d{2})\s*([AaPp][Mm])$")

ALL_DAY_DURATIONS = {"all day", "24 hours"}
ALL_DAY_HOURS = 24

LEADING_INT = re.compile(r"^\s*(\d+)")


def parse_time(value: Optional[str]) -> Optional[tuple[int, int]]:
    """
    Parse a start time into (hour, minute) in 24-hour form.

    Accepts "HH:MM" (24-hour) or "H:MM AM/PM" (12-hour). PM adds 12 unless
    the hour is already 12; 12 AM becomes hour 0.

    Returns:
        (hour, minute), or None if the value matches neither format
    """
    if not value:
        return None

    text = value.strip()

    match = TIME_24H.match(text)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            return None
        return hour, minute

    match = TIME_12H.match(text)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        if not 1 <= hour <= 12 or minute > 59:
            return None
        period = match.group(3).upper()
        if period == "PM" and hour != 12:
            hour += 12
        elif period == "AM" and hour == 12:
            hour = 0
        return hour, minute

    return None


def parse_start_hour(value: Optional[str]) -> Optional[int]:
    """Start hour (0-23) of a reservation time, or None if unrecognized."""
    parsed = parse_time(value)
    return parsed[0] if parsed else None


def normalize_time(value: str) -> str:
    """
    Normalize a start time to the canonical "HH:MM" form.

    Raises:
        ValueError: If the value matches neither recognized format
    """
    parsed = parse_time(value)
    if parsed is None:
        raise ValueError(f"Unrecognized time format: {value!r}")
    return f"{parsed[0]:02d}:{parsed[1]:02d}"


def is_all_day(duration: Optional[str]) -> bool:
    return bool(duration) and duration.strip().lower() in ALL_DAY_DURATIONS


def parse_duration_hours(duration: Optional[str]) -> float:
    """
    Parse a free-text duration into hours.

    "All day" and "24 hours" are the all-day sentinel (24). Otherwise the
    leading integer is taken, divided by 60 when the text mentions minutes.
    Text without a leading integer counts as zero hours.
    """
    if is_all_day(duration):
        return float(ALL_DAY_HOURS)

    match = LEADING_INT.match(duration or "")
    if not match:
        return 0.0

    amount = int(match.group(1))
    if "min" in duration.lower():
        return amount / 60
    return float(amount)


def derive_status(
    date: str,
    time: str,
    duration: str,
    now: datetime,
) -> Optional[ReservationStatus]:
    """
    Compute a reservation's status at ``now``.

    Dates are compared as ISO strings. Only a reservation dated today looks
    at the time of day: it is upcoming before its start hour, live until
    start + duration (all day: for the rest of the day) and past afterwards.

    Returns:
        The derived status, or None when the reservation is dated today and
        its time cannot be parsed
    """
    today = now.date().isoformat()

    if date > today:
        return ReservationStatus.UPCOMING
    if date < today:
        return ReservationStatus.PAST

    start_hour = parse_start_hour(time)
    if start_hour is None:
        return None

    current_hour = now.hour

    if start_hour > current_hour:
        return ReservationStatus.UPCOMING
    if is_all_day(duration) or start_hour + parse_duration_hours(duration) > current_hour:
        return ReservationStatus.LIVE
    return ReservationStatus.PAST


def initial_status(date: str, today: str) -> ReservationStatus:
    """Status stored at creation time, from the date alone."""
    if date == today:
        return ReservationStatus.LIVE
    if date > today:
        return ReservationStatus.UPCOMING
    return ReservationStatus.PAST


def remaining_time(date: str, time: str, duration: str, now: datetime) -> str:
    """
    Human-readable time left on a live reservation, e.g. "1h 35 min".

    Returns "Unknown" when the status itself is indeterminate (today, with
    an unparseable time) and an empty string for reservations that are
    not live.
    """
    status = derive_status(date, time, duration, now)
    if status is None:
        return "Unknown"
    if status != ReservationStatus.LIVE:
        return ""

    parsed = parse_time(time)

    start = datetime.combine(now.date(), datetime.min.time()).replace(
        hour=parsed[0], minute=parsed[1], tzinfo=now.tzinfo
    )
    if is_all_day(duration):
        end = datetime.combine(now.date() + timedelta(days=1), datetime.min.time()).replace(
            tzinfo=now.tzinfo
        )
    else:
        end = start + timedelta(hours=parse_duration_hours(duration))

    minutes = max(0, int((end - now).total_seconds() // 60))
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes} min"
    return f"{minutes} min"
