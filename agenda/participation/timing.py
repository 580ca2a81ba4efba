"""Wall-clock time rules for appointments.

Appointment times are ``"HH:MM"`` strings on a single calendar day. An end
time computed past midnight wraps around (``23:30`` + 1h is ``00:30``), as
the scheduling UI has always done.
"""

import re

from agenda.core.errors import LocationConflictError, ValidationError
from agenda.models import Appointment

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")
MINUTES_PER_DAY = 24 * 60


def parse_time(value: str) -> tuple[int, int]:
    """Parse ``"HH:MM"`` (seconds tolerated and ignored) into (hour, minute)."""
    match = _TIME_PATTERN.match(value.strip()) if value else None
    if not match:
        raise ValidationError(f"Invalid time '{value}', expected HH:MM")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValidationError(f"Invalid time '{value}', expected HH:MM")
    return hour, minute


def format_time(hour: int, minute: int) -> str:
    return f"{hour:02d}:{minute:02d}"


def normalize_time(value: str | None) -> str | None:
    """Return ``value`` as zero-padded ``"HH:MM"``, or None when blank."""
    if value is None or not value.strip():
        return None
    return format_time(*parse_time(value))


def add_minutes(start: str, minutes: int) -> str:
    """Shift ``start`` by ``minutes``, wrapping across midnight."""
    hour, minute = parse_time(start)
    total = (hour * 60 + minute + minutes) % MINUTES_PER_DAY
    return format_time(total // 60, total % 60)


def resolve_end_time(
    start_time: str | None,
    end_time: str | None,
    duration_minutes: int | None = None,
    default_minutes: int = 60,
) -> str:
    """Decide the end time an appointment is saved with.

    An explicit ``end_time`` wins, then ``start_time + duration_minutes``,
    then ``start_time + default_minutes``. Without a start time there is
    nothing to derive from.
    """
    end = normalize_time(end_time)
    if end:
        return end
    start = normalize_time(start_time)
    if not start:
        raise ValidationError("end time required")
    if duration_minutes is not None and duration_minutes <= 0:
        raise ValidationError("duration must be positive")
    return add_minutes(start, duration_minutes if duration_minutes is not None else default_minutes)


def _span(start: str, end: str) -> tuple[int, int]:
    """Minutes since midnight; an end at or before the start is on the next day."""
    start_hour, start_minute = parse_time(start)
    end_hour, end_minute = parse_time(end)
    begin = start_hour * 60 + start_minute
    finish = end_hour * 60 + end_minute
    if finish <= begin:
        finish += MINUTES_PER_DAY
    return begin, finish


def times_overlap(start: str, end: str, other_start: str, other_end: str) -> bool:
    """Whether [start, end] overlaps [other_start, other_end].

    Both intervals begin on the same day; an end time that wrapped past
    midnight counts as the following morning.
    """
    start_at, end_at = _span(start, end)
    other_start_at, other_end_at = _span(other_start, other_end)
    return (
        (other_start_at <= start_at < other_end_at)
        or (other_start_at < end_at <= other_end_at)
        or (start_at <= other_start_at and end_at >= other_end_at)
    )


def check_location_conflict(
    candidate: Appointment, booked: list[Appointment]
) -> None:
    """Raise ``LocationConflictError`` if ``candidate`` overlaps a booking.

    ``booked`` holds the other appointments at the same location; those on a
    different day, or missing either time, never conflict.
    """
    if not candidate.start_time or not candidate.end_time:
        raise ValidationError("Start and end times are required for this location")

    for other in booked:
        if other.id == candidate.id or other.date != candidate.date:
            continue
        if not other.start_time or not other.end_time:
            continue
        if times_overlap(candidate.start_time, candidate.end_time, other.start_time, other.end_time):
            raise LocationConflictError(
                f"Location is already booked by '{other.title}' "
                f"from {other.start_time} to {other.end_time}",
                conflicting_title=other.title,
                start=other.start_time,
                end=other.end_time,
            )
