"""
Result formatter.

Projects engine slots into the external response shape for a display
timezone. Pure projection: no filtering, no reordering, and the rendered
``startTime``/``endTime`` carry their UTC offset so they parse back to
the exact same instants.
"""

import logging
from datetime import datetime
from typing import Iterable

from intake_scheduling.config import settings
from intake_scheduling.schemas.slot_schema import FormattedSlot, MatchedSlot
from intake_scheduling.utils import format_timezone_name, resolve_timezone, to_zone

logger = logging.getLogger(__name__)


def _clock_label(moment: datetime) -> str:
    """12-hour clock label, e.g. ``5:00 PM``."""
    return f"{moment.hour % 12 or 12}:{moment:%M} {moment:%p}"


def _date_label(moment: datetime) -> str:
    """Long date label, e.g. ``Tuesday, October 14, 2025``."""
    return f"{moment:%A}, {moment:%B} {moment.day}, {moment.year}"


def format_slot(slot: MatchedSlot, display_timezone: str) -> FormattedSlot:
    local_start = to_zone(slot.start, display_timezone)
    local_end = to_zone(slot.end, display_timezone)

    formatted_date = _date_label(local_start)
    formatted_time = f"{_clock_label(local_start)} - {_clock_label(local_end)}"
    timezone_name = format_timezone_name(display_timezone)

    return FormattedSlot(
        availability_id=slot.record_id,
        owner_id=slot.owner_id,
        start_time=local_start.isoformat(),
        end_time=local_end.isoformat(),
        timezone=display_timezone,
        location_id=slot.location_id,
        source_timezone=slot.source_timezone,
        formatted_date=formatted_date,
        formatted_time=formatted_time,
        timezone_name=timezone_name,
        display_text=f"{formatted_date} at {formatted_time} ({timezone_name})",
    )


def format_slots(slots: Iterable[MatchedSlot], display_timezone: str) -> list[FormattedSlot]:
    """Render every slot in ``display_timezone``, preserving count and order.

    An unknown display timezone falls back to the configured default zone.
    """
    resolved = resolve_timezone(display_timezone, settings.matching.fallback_timezone)
    if resolved != display_timezone:
        logger.warning("Unknown display timezone %r, using %s", display_timezone, resolved)
    return [format_slot(slot, resolved) for slot in slots]
