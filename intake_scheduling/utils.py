"""Shared timezone and calendar helpers used across the scheduling service."""

from datetime import date, datetime, time
from typing import Any, Optional

import pytz

DEFAULT_TIMEZONE = "America/Los_Angeles"

TIMEZONE_NAMES: dict[str, str] = {
    "America/Los_Angeles": "Pacific Time",
    "America/Denver": "Mountain Time",
    "America/Chicago": "Central Time",
    "America/New_York": "Eastern Time",
    "America/Phoenix": "Mountain Time (Arizona)",
    "America/Anchorage": "Alaska Time",
    "Pacific/Honolulu": "Hawaii Time",
}

_CITY_REGIONS: list[tuple[tuple[str, ...], str]] = [
    (("Los Angeles", "Vancouver", "Tijuana"), "Pacific Time"),
    (("Denver", "Boise", "Edmonton"), "Mountain Time"),
    (("Chicago", "Winnipeg", "Mexico City"), "Central Time"),
    (("New York", "Detroit", "Toronto", "Indiana"), "Eastern Time"),
]


def is_valid_timezone(name: Any) -> bool:
    """Return True if ``name`` is a known IANA timezone identifier."""
    if not name or not isinstance(name, str):
        return False
    try:
        pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        return False
    return True


def resolve_timezone(name: Optional[str], fallback: str = DEFAULT_TIMEZONE) -> str:
    """Return ``name`` if it is a valid IANA zone, otherwise ``fallback``."""
    return name if is_valid_timezone(name) else fallback


def localize(naive: datetime, tz_name: str) -> datetime:
    """Attach ``tz_name`` to a naive wall-clock datetime.

    Wall-clock times that fall in a DST gap or overlap resolve to the
    standard-time interpretation rather than raising.
    """
    return pytz.timezone(tz_name).localize(naive)


def to_zone(instant: datetime, tz_name: str) -> datetime:
    """Convert an aware datetime to the wall clock of ``tz_name``."""
    return instant.astimezone(pytz.timezone(tz_name))


def local_date(instant: datetime, tz_name: str) -> date:
    return to_zone(instant, tz_name).date()


def sunday_weekday(day: date) -> int:
    """Weekday number with 0=Sunday .. 6=Saturday.

    Examples:
        >>> sunday_weekday(date(2025, 10, 12))
        0
        >>> sunday_weekday(date(2025, 10, 13))
        1
    """
    return (day.weekday() + 1) % 7


def parse_clock(value: str) -> time:
    """Parse an ``HH:MM`` string into a time of day."""
    return datetime.strptime(value.strip(), "%H:%M").time()


def format_timezone_name(tz_name: Optional[str]) -> str:
    """Convert an IANA timezone identifier to a user-friendly name.

    Examples:
        >>> format_timezone_name("America/New_York")
        'Eastern Time'
        >>> format_timezone_name("Europe/Paris")
        'Europe/Paris'
    """
    if not tz_name or not isinstance(tz_name, str):
        return TIMEZONE_NAMES[DEFAULT_TIMEZONE]
    if tz_name in TIMEZONE_NAMES:
        return TIMEZONE_NAMES[tz_name]

    region, _, city = tz_name.partition("/")
    if region == "America" and city:
        city = city.replace("_", " ")
        for cities, friendly in _CITY_REGIONS:
            if any(c in city for c in cities):
                return friendly

    return tz_name.replace("_", " ")
