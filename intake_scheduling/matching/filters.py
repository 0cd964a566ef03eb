"""
Per-occurrence preference filters.

Each check is independent and an occurrence must pass all of them. Empty
preference fields impose no restriction.
"""

from datetime import datetime, timedelta, timezone
from typing import Collection

from intake_scheduling.schemas.preference_schema import PreferenceModel, RecurringPattern, TimeRange
from intake_scheduling.schemas.slot_schema import MatchedSlot
from intake_scheduling.utils import local_date, localize, parse_clock, sunday_weekday

WEEKDAYS = frozenset({1, 2, 3, 4, 5})
WEEKEND_DAYS = frozenset({0, 6})


def occurrence_weekday(slot: MatchedSlot) -> int:
    """Sunday-based weekday of the occurrence start, in its own timezone."""
    return sunday_weekday(local_date(slot.start, slot.source_timezone))


def matches_days_of_week(slot: MatchedSlot, days_of_week: Collection[int]) -> bool:
    if not days_of_week:
        return True
    return occurrence_weekday(slot) in days_of_week


def matches_pattern(slot: MatchedSlot, pattern: RecurringPattern) -> bool:
    if pattern == RecurringPattern.WEEKDAYS:
        return occurrence_weekday(slot) in WEEKDAYS
    if pattern == RecurringPattern.WEEKENDS:
        return occurrence_weekday(slot) in WEEKEND_DAYS
    return True


def overlaps_time_range(slot: MatchedSlot, time_range: TimeRange) -> bool:
    """Half-open overlap between an occurrence and a daily time-of-day window.

    The window is anchored on every local date (in the window's own zone)
    the occurrence touches, plus the previous day so a window wrapping past
    midnight (``end < start``) can reach into the next morning. Touching
    endpoints do not count as overlap, and a zero-length window
    (``start == end``) matches nothing.
    """
    tz_name = time_range.timezone
    start_clock = parse_clock(time_range.start)
    end_clock = parse_clock(time_range.end)
    if end_clock == start_clock:
        return False
    wrap = timedelta(days=1) if end_clock < start_clock else timedelta(0)

    day = local_date(slot.start, tz_name) - timedelta(days=1)
    last = local_date(slot.end, tz_name)
    while day <= last:
        window_start = localize(datetime.combine(day, start_clock), tz_name).astimezone(timezone.utc)
        window_end = localize(datetime.combine(day + wrap, end_clock), tz_name).astimezone(timezone.utc)
        if slot.start < window_end and slot.end > window_start:
            return True
        day += timedelta(days=1)
    return False


def matches_time_ranges(slot: MatchedSlot, time_ranges: Collection[TimeRange]) -> bool:
    if not time_ranges:
        return True
    return any(overlaps_time_range(slot, tr) for tr in time_ranges)


def matches_specific_dates(slot: MatchedSlot, specific_dates: Collection, reference_timezone: str) -> bool:
    if not specific_dates:
        return True
    return local_date(slot.start, reference_timezone) in specific_dates


def passes_preferences(slot: MatchedSlot, preferences: PreferenceModel, reference_timezone: str) -> bool:
    """Apply every preference filter to one occurrence."""
    return (
        matches_days_of_week(slot, preferences.days_of_week)
        and matches_pattern(slot, preferences.recurring_pattern)
        and matches_time_ranges(slot, preferences.time_ranges)
        and matches_specific_dates(slot, frozenset(preferences.specific_dates), reference_timezone)
    )
