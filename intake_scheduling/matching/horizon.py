"""Evaluation horizon: the bounded window the engine searches for occurrences."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from intake_scheduling.matching.errors import InvalidPreference
from intake_scheduling.schemas.preference_schema import DateConstraints
from intake_scheduling.utils import local_date, localize


@dataclass(frozen=True)
class Horizon:
    """Half-open window ``[start, end)`` of UTC instants."""

    start: datetime
    end: datetime

    def intersects(self, start: datetime, end: datetime) -> bool:
        """True if the occurrence ``[start, end]`` overlaps the window."""
        return start < self.end and end > self.start

    def first_date(self, tz_name: str) -> date:
        return local_date(self.start, tz_name)

    def last_date(self, tz_name: str) -> date:
        # end is exclusive, so step back one microsecond before taking the date
        return local_date(self.end - timedelta(microseconds=1), tz_name)


def _midnight(day: date, tz_name: str) -> datetime:
    return localize(datetime.combine(day, time.min), tz_name).astimezone(timezone.utc)


def resolve_horizon(
    now: datetime,
    horizon_days: int,
    date_constraints: Optional[DateConstraints],
    reference_timezone: str,
) -> Horizon:
    """Compute the search window.

    Defaults to ``[now, now + horizon_days)``. ``start_date``/``end_date``
    (calendar dates in the reference timezone, end inclusive) can only
    narrow that window. ``relative`` is informational and ignored.

    Raises:
        InvalidPreference: if ``now`` is naive, the constraint dates are
            reversed, or the resolved window is empty.
    """
    if now.tzinfo is None:
        raise InvalidPreference("Horizon anchor 'now' must be timezone-aware")

    start = now.astimezone(timezone.utc)
    end = start + timedelta(days=horizon_days)

    if date_constraints is not None:
        start_date = date_constraints.start_date
        end_date = date_constraints.end_date
        if start_date and end_date and start_date > end_date:
            raise InvalidPreference(
                f"dateConstraints.startDate {start_date} is after endDate {end_date}"
            )
        if start_date:
            start = max(start, _midnight(start_date, reference_timezone))
        if end_date:
            end = min(end, _midnight(end_date + timedelta(days=1), reference_timezone))

    if start >= end:
        raise InvalidPreference(
            f"Evaluation horizon is empty ({start.isoformat()} - {end.isoformat()})"
        )
    return Horizon(start=start, end=end)
