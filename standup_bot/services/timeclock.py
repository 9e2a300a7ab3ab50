"""
Wall-clock rules for stand-up days, deadlines and scheduler ticks.

Configured times are stored as ``HH:MM:SS`` strings. Ticks are matched to
the minute, so a tick is just an ``HH:MM`` prefix.
"""

import re
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import ConfigurationError, InvalidTickError

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def get_zone(tz_name: str) -> ZoneInfo:
    """Resolve an IANA zone name, raising ConfigurationError if unknown."""
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigurationError(f"Unknown timezone: {tz_name}") from e


def parse_time_of_day(value: str) -> time:
    """Parse ``HH:MM`` or ``HH:MM:SS`` into a time."""
    match = _TIME_RE.match(value.strip())
    if not match:
        raise ConfigurationError(f"Invalid time of day: {value!r}")

    hour, minute, second = (int(part) if part else 0 for part in match.groups())
    if hour > 23 or minute > 59 or second > 59:
        raise ConfigurationError(f"Invalid time of day: {value!r}")
    return time(hour, minute, second)


def normalize_time(value: str) -> str:
    """Return the stored ``HH:MM:SS`` form of a configured time."""
    return parse_time_of_day(value).strftime("%H:%M:%S")


def tick_pattern(hour: int | str, minute: int | str) -> str:
    """
    Zero-padded ``HH:MM`` for a tick.

    Accepts ints or strings (``"9"``, ``"09"``) and rejects anything outside
    a 24-hour clock.
    """
    try:
        h = int(hour)
        m = int(minute)
    except (TypeError, ValueError) as e:
        raise InvalidTickError(f"Invalid tick {hour}:{minute}") from e

    if not (0 <= h < 24 and 0 <= m < 60):
        raise InvalidTickError(f"Invalid tick {hour}:{minute}")
    return f"{h:02d}:{m:02d}"


def matches_tick(configured: str, hour: int | str, minute: int | str) -> bool:
    """True when a stored ``HH:MM:SS`` falls in the tick's minute."""
    return configured.startswith(tick_pattern(hour, minute))


def now_in(tz_name: str, now: datetime | None = None) -> datetime:
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return current.astimezone(get_zone(tz_name))


def today_in(tz_name: str, now: datetime | None = None) -> date:
    """The calendar date it currently is in ``tz_name``."""
    return now_in(tz_name, now).date()


def tick_instant(
    hour: int | str,
    minute: int | str,
    tz_name: str,
    now: datetime | None = None,
) -> datetime:
    """
    The instant a tick stands for: ``hour:minute`` today on ``tz_name``'s clock.

    Teams are matched by converting this instant to their own zone.
    """
    tick_pattern(hour, minute)
    return now_in(tz_name, now).replace(
        hour=int(hour), minute=int(minute), second=0, microsecond=0
    )


def is_late(submitted_at: datetime, deadline_time: str, tz_name: str) -> bool:
    """
    Whether a submission arrived at or after the team's deadline.

    The comparison is on local time of day in the team's zone; naive
    timestamps are taken to be UTC.
    """
    deadline = parse_time_of_day(deadline_time)
    local = now_in(tz_name, submitted_at)
    return local.time() >= deadline


def format_day(day: date) -> str:
    """e.g. ``Monday, January 15, 2024``."""
    return f"{day:%A}, {day:%B} {day.day}, {day.year}"


def format_clock(value: str) -> str:
    """e.g. ``19:00:00`` -> ``7:00 PM``."""
    t = parse_time_of_day(value)
    hour = t.hour % 12 or 12
    suffix = "AM" if t.hour < 12 else "PM"
    return f"{hour}:{t.minute:02d} {suffix}"
