"""
Occurrence expansion.

Turns availability records into concrete, dated occurrences inside a
horizon. One-off records yield at most one occurrence; weekly templates
yield one occurrence per matching local date, built from the template's
wall-clock times in the record's own timezone so DST shifts are honored.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator

from intake_scheduling.matching.horizon import Horizon
from intake_scheduling.schemas.availability_schema import AvailabilityRecord
from intake_scheduling.schemas.slot_schema import MatchedSlot
from intake_scheduling.utils import localize, sunday_weekday, to_zone

logger = logging.getLogger(__name__)


def _occurrence(record: AvailabilityRecord, start: datetime, end: datetime) -> MatchedSlot:
    return MatchedSlot(
        record_id=record.id,
        owner_id=record.owner_id,
        start=start.astimezone(timezone.utc),
        end=end.astimezone(timezone.utc),
        source_timezone=record.timezone,
        location_id=record.location_id,
    )


def _template_window(record: AvailabilityRecord) -> tuple[time, time, int]:
    """Wall-clock start/end of a template and how many days the window spans."""
    local_start = to_zone(record.range_start, record.timezone)
    local_end = to_zone(record.range_end, record.timezone)
    span_days = (local_end.date() - local_start.date()).days
    return local_start.time().replace(tzinfo=None), local_end.time().replace(tzinfo=None), span_days


def _date_range(first: date, last: date) -> Iterator[date]:
    day = first
    while day <= last:
        yield day
        day += timedelta(days=1)


def expand_repeating(record: AvailabilityRecord, horizon: Horizon) -> Iterator[MatchedSlot]:
    """Expand a weekly template across the horizon, stopping at ``end_on``."""
    if record.day_of_week is None:
        logger.warning("Skipping repeating availability %d with no day_of_week", record.id)
        return

    start_clock, end_clock, span_days = _template_window(record)
    tz_name = record.timezone

    # start early enough to catch an overnight window spilling into the horizon
    first = horizon.first_date(tz_name) - timedelta(days=span_days)
    last = horizon.last_date(tz_name)
    if record.end_on is not None and record.end_on < last:
        last = record.end_on

    for day in _date_range(first, last):
        if sunday_weekday(day) != record.day_of_week:
            continue
        start = localize(datetime.combine(day, start_clock), tz_name)
        end = localize(datetime.combine(day + timedelta(days=span_days), end_clock), tz_name)
        if end < start:
            continue
        if horizon.intersects(start, end):
            yield _occurrence(record, start, end)


def expand_record(record: AvailabilityRecord, horizon: Horizon) -> Iterator[MatchedSlot]:
    """Yield every occurrence of ``record`` that intersects ``horizon``."""
    if record.is_repeating:
        yield from expand_repeating(record, horizon)
        return
    if horizon.intersects(record.range_start, record.range_end):
        yield _occurrence(record, record.range_start, record.range_end)


def split_occurrence(slot: MatchedSlot, minutes: int) -> list[MatchedSlot]:
    """Cut an occurrence into consecutive fixed-length appointment slots.

    A trailing remainder shorter than ``minutes`` is dropped.
    """
    length = timedelta(minutes=minutes)
    pieces: list[MatchedSlot] = []
    cursor = slot.start
    while cursor + length <= slot.end:
        pieces.append(
            MatchedSlot(
                record_id=slot.record_id,
                owner_id=slot.owner_id,
                start=cursor,
                end=cursor + length,
                source_timezone=slot.source_timezone,
                location_id=slot.location_id,
            )
        )
        cursor += length
    return pieces
