"""
Guardian scheduling preference model and its structural validation.

The oracle returns camelCase JSON; the model accepts that shape through
field aliases and exposes snake_case attributes to the engine. Days must
be JSON integers and dates ``YYYY-MM-DD`` strings: pydantic's lax
coercion of ``"1"``, ``true`` or epoch numbers is switched off for them.
"""

import re
from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StrictInt,
    ValidationError,
    field_validator,
)

from intake_scheduling.utils import is_valid_timezone, resolve_timezone

CLOCK_PATTERN = r"^([01][0-9]|2[0-3]):[0-5][0-9]$"
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _calendar_date(value: Any) -> date:
    """Accept a ``YYYY-MM-DD`` string (or a plain date from Python callers)."""
    if isinstance(value, datetime):
        raise ValueError("must be a calendar date, not a timestamp")
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        raise ValueError("must be a YYYY-MM-DD string")
    return date.fromisoformat(value)


DayOfWeek = Annotated[StrictInt, Field(ge=0, le=6)]
CalendarDate = Annotated[date, BeforeValidator(_calendar_date)]

class RecurringPattern(str, Enum):
    """Coarse day filter applied on top of ``days_of_week``."""

    WEEKDAYS = "weekdays"
    WEEKENDS = "weekends"
    DAILY = "daily"
    NONE = "none"


class PreferenceValidationError(ValueError):
    """Raised when a preference payload fails structural validation."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__("Invalid preferences: " + ", ".join(errors))


class TimeRange(BaseModel):
    """A local time-of-day window, interpreted in its own timezone."""

    model_config = ConfigDict(frozen=True)

    start: str = Field(pattern=CLOCK_PATTERN)
    end: str = Field(pattern=CLOCK_PATTERN)
    timezone: str

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        if not is_valid_timezone(value):
            raise ValueError("must be a valid IANA timezone")
        return value


class DateConstraints(BaseModel):
    """Absolute bounds on the search horizon.

    ``relative`` is kept for display and analytics only; it has already
    been resolved to ``start_date``/``end_date`` upstream.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    start_date: Optional[CalendarDate] = Field(default=None, alias="startDate")
    end_date: Optional[CalendarDate] = Field(default=None, alias="endDate")
    relative: Optional[str] = None


class PreferenceModel(BaseModel):
    """Validated structural representation of when a guardian can meet."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    days_of_week: tuple[DayOfWeek, ...] = Field(alias="daysOfWeek")
    time_ranges: tuple[TimeRange, ...] = Field(alias="timeRanges")
    date_constraints: Optional[DateConstraints] = Field(default=None, alias="dateConstraints")
    specific_dates: tuple[CalendarDate, ...] = Field(alias="specificDates")
    recurring_pattern: RecurringPattern = Field(alias="recurringPattern")

    def reference_timezone(self, default: Optional[str] = None) -> str:
        """Zone used to interpret calendar dates in this preference.

        The first time range's zone wins; otherwise ``default``, otherwise
        the service fallback zone.
        """
        if self.time_ranges:
            return self.time_ranges[0].timezone
        return resolve_timezone(default)

    def to_payload(self) -> dict[str, Any]:
        """Serialize back to the camelCase JSON contract."""
        return self.model_dump(mode="json", by_alias=True)


def _format_errors(exc: ValidationError) -> list[str]:
    errors = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err["loc"])
        errors.append(f"{location}: {err['msg']}" if location else err["msg"])
    return errors


def validate_preferences(payload: Any) -> list[str]:
    """Return field-level validation errors for a preference payload.

    An empty list means the payload is valid.
    """
    if not isinstance(payload, dict):
        return ["Preferences must be an object"]
    try:
        PreferenceModel.model_validate(payload)
    except ValidationError as exc:
        return _format_errors(exc)
    return []


def parse_preferences(payload: Any) -> PreferenceModel:
    """Validate and build a PreferenceModel.

    Raises:
        PreferenceValidationError: listing every field-level problem found.
    """
    if not isinstance(payload, dict):
        raise PreferenceValidationError(["Preferences must be an object"])
    try:
        return PreferenceModel.model_validate(payload)
    except ValidationError as exc:
        raise PreferenceValidationError(_format_errors(exc)) from None
