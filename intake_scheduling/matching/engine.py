"""
Availability matching engine.

Pure, deterministic mapping from (preference, availability records,
organization scope, horizon anchor) to an ordered, bounded list of
concrete appointment slots. No I/O; safe to call concurrently.

Pipeline:
    1. resolve the horizon
    2. drop soft-deleted and out-of-scope records
    3. expand records into occurrences (optionally split into fixed slots)
    4. apply preference filters
    5. order by (start, owner, record) and collapse identical slots
    6. truncate to the result cap

Usage:
    slots = match_availability(prefs, repository.snapshot().records,
                               organization_id=85685, now=datetime.now(timezone.utc))
"""

import logging
from datetime import datetime
from typing import Iterable, Optional

from intake_scheduling.config import settings
from intake_scheduling.matching.errors import InvalidPreference
from intake_scheduling.matching.filters import passes_preferences
from intake_scheduling.matching.horizon import resolve_horizon
from intake_scheduling.matching.recurrence import expand_record, split_occurrence
from intake_scheduling.schemas.availability_schema import AvailabilityRecord
from intake_scheduling.schemas.preference_schema import CLOCK_PATTERN, PreferenceModel
from intake_scheduling.schemas.slot_schema import MatchedSlot
from intake_scheduling.utils import is_valid_timezone, parse_clock

logger = logging.getLogger(__name__)


def check_preference_invariants(preferences: PreferenceModel) -> None:
    """Re-check the cheap invariants the engine relies on.

    Validated models always pass; models built with ``model_construct``
    or mutated upstream may not.
    """
    for day in preferences.days_of_week:
        if not isinstance(day, int) or not 0 <= day <= 6:
            raise InvalidPreference(f"daysOfWeek must contain numbers 0-6, found: {day!r}")
    for index, time_range in enumerate(preferences.time_ranges):
        if not is_valid_timezone(time_range.timezone):
            raise InvalidPreference(
                f"timeRanges[{index}].timezone must be a valid IANA timezone"
            )
        for bound in (time_range.start, time_range.end):
            try:
                parse_clock(bound)
            except (ValueError, AttributeError):
                raise InvalidPreference(
                    f"timeRanges[{index}] bound {bound!r} does not match {CLOCK_PATTERN}"
                ) from None


def _in_scope(record: AvailabilityRecord, organization_id: int) -> bool:
    return not record.is_deleted and record.organization_id == organization_id


def match_availability(
    preferences: PreferenceModel,
    records: Iterable[AvailabilityRecord],
    organization_id: int,
    now: datetime,
    reference_timezone: Optional[str] = None,
    max_results: Optional[int] = None,
    horizon_days: Optional[int] = None,
    slot_minutes: Optional[int] = None,
) -> list[MatchedSlot]:
    """Compute the ordered candidate slots satisfying ``preferences``.

    Args:
        preferences: validated guardian preference.
        records: availability snapshot records.
        organization_id: tenant scope; other organizations are ignored.
        now: horizon anchor; must be timezone-aware.
        reference_timezone: zone for calendar dates when the preference
            has no time range of its own.
        max_results: result cap (defaults to configuration); 0 or less
            yields no slots.
        horizon_days: forward-looking bound (defaults to configuration).
        slot_minutes: split occurrences into fixed-length slots; 0 or
            None (with a zero configured default) keeps whole occurrences.

    Returns:
        Slots ordered by start instant, then owner, then record id. An
        empty list is a normal result.

    Raises:
        InvalidPreference: if the preference breaks an engine invariant
            or resolves to an empty horizon.
    """
    cfg = settings.matching
    max_results = cfg.max_results if max_results is None else max_results
    horizon_days = cfg.horizon_days if horizon_days is None else horizon_days
    slot_minutes = cfg.slot_minutes if slot_minutes is None else slot_minutes

    check_preference_invariants(preferences)
    ref_tz = preferences.reference_timezone(reference_timezone or cfg.fallback_timezone)
    horizon = resolve_horizon(now, horizon_days, preferences.date_constraints, ref_tz)

    candidates: list[MatchedSlot] = []
    considered = 0
    for record in records:
        if not _in_scope(record, organization_id):
            continue
        considered += 1
        for occurrence in expand_record(record, horizon):
            pieces = split_occurrence(occurrence, slot_minutes) if slot_minutes else [occurrence]
            candidates.extend(p for p in pieces if passes_preferences(p, preferences, ref_tz))

    candidates.sort(key=MatchedSlot.sort_key)

    results: list[MatchedSlot] = []
    seen: set[tuple] = set()
    for slot in candidates:
        if len(results) >= max_results:
            break
        key = slot.identity()
        if key in seen:
            continue
        seen.add(key)
        results.append(slot)

    logger.debug(
        "Matched %d slot(s) from %d in-scope record(s), %d candidate(s)",
        len(results), considered, len(candidates),
    )
    return results
