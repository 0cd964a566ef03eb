from intake_scheduling.schemas.availability_schema import AvailabilityRecord, AvailabilitySnapshot
from intake_scheduling.schemas.preference_schema import (
    DateConstraints,
    PreferenceModel,
    PreferenceValidationError,
    RecurringPattern,
    TimeRange,
    parse_preferences,
    validate_preferences,
)
from intake_scheduling.schemas.slot_schema import FormattedSlot, MatchedSlot

__all__ = [
    "AvailabilityRecord",
    "AvailabilitySnapshot",
    "DateConstraints",
    "PreferenceModel",
    "PreferenceValidationError",
    "RecurringPattern",
    "TimeRange",
    "parse_preferences",
    "validate_preferences",
    "FormattedSlot",
    "MatchedSlot",
]
