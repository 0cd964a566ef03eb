"""
Clinician availability repository.

Loads raw availability rows (CSV today; any object with ``read_rows()``
works), normalizes and validates them into immutable records, and serves
a cached snapshot that is refreshed on a bounded interval. A malformed
row is skipped and counted, never fatal; an unreachable or unreadable
source raises LoadFailure.
"""

import csv
import logging
import threading
import time
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Optional, Protocol, Union

from intake_scheduling.schemas.availability_schema import AvailabilityRecord, AvailabilitySnapshot
from intake_scheduling.utils import DEFAULT_TIMEZONE, is_valid_timezone, localize, to_zone

logger = logging.getLogger(__name__)

CSV_COLUMNS = (
    "id",
    "user_id",
    "range_start",
    "range_end",
    "timezone",
    "day_of_week",
    "is_repeating",
    "end_on",
    "appointment_location_id",
    "parent_organization_id",
    "deleted_at",
)
REQUIRED_COLUMNS = frozenset({"id", "user_id", "range_start", "range_end"})
TRUE_VALUES = frozenset({"true", "1"})


class LoadFailure(Exception):
    """The availability source could not be read as a whole."""


class RowRejected(ValueError):
    """A single availability row is malformed and must be skipped."""


class AvailabilitySource(Protocol):
    """Anything that can yield raw availability rows keyed by column name."""

    def read_rows(self) -> Iterable[Mapping[str, Any]]: ...


class CsvAvailabilitySource:
    """Reads availability rows from a CSV export of ``clinician_availabilities``."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def read_rows(self) -> list[dict[str, Any]]:
        try:
            with self.path.open(newline="", encoding="utf-8-sig") as handle:
                reader = csv.DictReader(handle)
                if reader.fieldnames is None:
                    raise LoadFailure(f"Availability CSV is empty: {self.path}")
                reader.fieldnames = [name.strip() for name in reader.fieldnames]
                missing = REQUIRED_COLUMNS - set(reader.fieldnames)
                if missing:
                    raise LoadFailure(
                        f"Availability CSV {self.path} is missing columns: {sorted(missing)}"
                    )
                return list(reader)
        except (OSError, UnicodeDecodeError, csv.Error) as exc:
            raise LoadFailure(f"Failed to load availability CSV {self.path}: {exc}") from exc


class InMemoryAvailabilitySource:
    """Serves rows that are already in memory (fixtures, demos, other stores)."""

    def __init__(self, rows: Iterable[Mapping[str, Any]]) -> None:
        self._rows = list(rows)

    def read_rows(self) -> list[Mapping[str, Any]]:
        return list(self._rows)


# ---------------------------------------------------------------------- #
# Row normalization
# ---------------------------------------------------------------------- #

def _text(row: Mapping[str, Any], column: str) -> Optional[str]:
    value = row.get(column)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _required_int(row: Mapping[str, Any], column: str) -> int:
    raw = _text(row, column)
    if raw is None:
        raise RowRejected(f"missing required field '{column}'")
    try:
        return int(raw)
    except ValueError:
        raise RowRejected(f"invalid integer for '{column}': {raw!r}") from None


def _optional_int(row: Mapping[str, Any], column: str, row_id: int) -> Optional[int]:
    raw = _text(row, column)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s %r for availability %d", column, raw, row_id)
        return None


def parse_bool(value: Any) -> bool:
    """``"true"`` and ``"1"`` (any case) are true; everything else is false."""
    if value is None:
        return False
    return str(value).strip().lower() in TRUE_VALUES


def parse_timestamp(raw: str, tz_name: str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Timestamps without an offset are wall-clock times in ``tz_name``.
    """
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = localize(parsed, tz_name)
    return parsed.astimezone(timezone.utc)


def _parse_end_on(raw: str, tz_name: str) -> date:
    if len(raw) == 10:
        return date.fromisoformat(raw)
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        return parsed.date()
    return to_zone(parsed, tz_name).date()


def parse_row(row: Mapping[str, Any], fallback_timezone: str = DEFAULT_TIMEZONE) -> AvailabilityRecord:
    """Normalize one raw row into an AvailabilityRecord.

    Raises:
        RowRejected: if a required field is missing or malformed, or the
            row's range starts after it ends.
    """
    record_id = _required_int(row, "id")
    owner_id = _required_int(row, "user_id")
    organization_id = _required_int(row, "parent_organization_id")

    tz_name = _text(row, "timezone")
    if not is_valid_timezone(tz_name):
        logger.warning(
            "Invalid timezone %r for availability %d, falling back to %s",
            tz_name, record_id, fallback_timezone,
        )
        tz_name = fallback_timezone

    raw_start = _text(row, "range_start")
    raw_end = _text(row, "range_end")
    if raw_start is None or raw_end is None:
        raise RowRejected("missing required field 'range_start' or 'range_end'")
    try:
        range_start = parse_timestamp(raw_start, tz_name)
        range_end = parse_timestamp(raw_end, tz_name)
    except ValueError:
        raise RowRejected(f"unparseable range {raw_start!r} - {raw_end!r}") from None
    if range_start > range_end:
        raise RowRejected("range_start is after range_end")

    deleted_raw = _text(row, "deleted_at")
    end_on_raw = _text(row, "end_on")
    try:
        deleted_at = parse_timestamp(deleted_raw, tz_name) if deleted_raw else None
        end_on = _parse_end_on(end_on_raw, tz_name) if end_on_raw else None
    except ValueError:
        raise RowRejected(f"unparseable deleted_at/end_on {deleted_raw!r} / {end_on_raw!r}") from None

    day_of_week = _optional_int(row, "day_of_week", record_id)
    if day_of_week is not None and not 0 <= day_of_week <= 6:
        logger.warning("Ignoring out-of-range day_of_week %d for availability %d", day_of_week, record_id)
        day_of_week = None

    return AvailabilityRecord(
        id=record_id,
        owner_id=owner_id,
        range_start=range_start,
        range_end=range_end,
        timezone=tz_name,
        organization_id=organization_id,
        day_of_week=day_of_week,
        is_repeating=parse_bool(row.get("is_repeating")),
        end_on=end_on,
        location_id=_optional_int(row, "appointment_location_id", record_id),
        deleted_at=deleted_at,
    )


# ---------------------------------------------------------------------- #
# Repository
# ---------------------------------------------------------------------- #

class AvailabilityRepository:
    """
    Owns the shared availability snapshot.

    Readers call ``snapshot()`` and may receive cached data up to
    ``refresh_interval_seconds`` old. A refresh builds a complete new
    snapshot before swapping a single reference, so concurrent readers see
    either the old or the new snapshot, never a mix.
    """

    def __init__(
        self,
        source: AvailabilitySource,
        fallback_timezone: str = DEFAULT_TIMEZONE,
        refresh_interval_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self._fallback_timezone = fallback_timezone
        self._refresh_interval = refresh_interval_seconds
        self._clock = clock
        self._refresh_lock = threading.Lock()
        # (snapshot, monotonic load time), swapped as one reference
        self._state: Optional[tuple[AvailabilitySnapshot, float]] = None

    def load(self) -> AvailabilitySnapshot:
        """Read and validate the full dataset without touching the cache.

        Raises:
            LoadFailure: if the source is unreachable or unparseable.
        """
        try:
            rows = self._source.read_rows()
        except LoadFailure:
            raise
        except Exception as exc:
            raise LoadFailure(f"Availability source unavailable: {exc}") from exc

        records: list[AvailabilityRecord] = []
        seen_ids: set[int] = set()
        rejected = 0
        for index, row in enumerate(rows):
            try:
                record = parse_row(row, self._fallback_timezone)
            except RowRejected as exc:
                rejected += 1
                logger.warning("Skipping availability row %d: %s", index, exc)
                continue
            if record.id in seen_ids:
                rejected += 1
                logger.warning("Skipping duplicate availability ID: %d", record.id)
                continue
            seen_ids.add(record.id)
            records.append(record)

        logger.info("Loaded %d availability records (%d rejected)", len(records), rejected)
        return AvailabilitySnapshot(records=tuple(records), rejected=rejected)

    def snapshot(self) -> AvailabilitySnapshot:
        """Return the cached snapshot, reloading it when stale."""
        state = self._state
        if state is not None and not self._is_stale(state):
            return state[0]
        return self.refresh(force=False)

    def refresh(self, force: bool = True) -> AvailabilitySnapshot:
        """Reload the dataset and atomically replace the cached snapshot.

        If the reload fails and a previous snapshot exists, the previous
        snapshot keeps being served.
        """
        with self._refresh_lock:
            state = self._state
            if not force and state is not None and not self._is_stale(state):
                return state[0]
            try:
                fresh = self.load()
            except LoadFailure:
                if state is None:
                    raise
                logger.warning("Availability refresh failed, serving previous snapshot", exc_info=True)
                return state[0]
            self._state = (fresh, self._clock())
            return fresh

    def clear(self) -> None:
        """Drop the cached snapshot; the next read reloads."""
        with self._refresh_lock:
            self._state = None
        logger.info("Availability cache cleared")

    def metadata(self) -> dict[str, Any]:
        """Cache metadata for health checks."""
        state = self._state
        if state is None:
            return {"is_cached": False, "loaded_at": None, "record_count": 0, "rejected": 0}
        snap = state[0]
        return {
            "is_cached": True,
            "loaded_at": snap.loaded_at.isoformat(),
            "record_count": len(snap.records),
            "rejected": snap.rejected,
        }

    def _is_stale(self, state: tuple[AvailabilitySnapshot, float]) -> bool:
        return self._clock() - state[1] >= self._refresh_interval
