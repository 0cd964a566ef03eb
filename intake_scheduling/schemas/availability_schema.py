"""Clinician availability records and the immutable snapshot that holds them."""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional


@dataclass(frozen=True)
class AvailabilityRecord:
    """
    One validated row of clinician availability.

    For a repeating record, ``range_start``/``range_end`` describe the
    wall-clock window of a single weekly occurrence on ``day_of_week``;
    the matching engine expands it across dates. All datetimes are
    timezone-aware.
    """

    id: int
    owner_id: int
    range_start: datetime
    range_end: datetime
    timezone: str
    organization_id: int
    day_of_week: Optional[int] = None  # 0=Sunday .. 6=Saturday
    is_repeating: bool = False
    end_on: Optional[date] = None
    location_id: Optional[int] = None
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass(frozen=True)
class AvailabilitySnapshot:
    """A complete, read-only load of the availability dataset."""

    records: tuple[AvailabilityRecord, ...] = ()
    rejected: int = 0
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __len__(self) -> int:
        return len(self.records)
