from intake_scheduling.matching.engine import check_preference_invariants, match_availability
from intake_scheduling.matching.errors import InvalidPreference
from intake_scheduling.matching.formatter import format_slot, format_slots
from intake_scheduling.matching.horizon import Horizon, resolve_horizon

__all__ = [
    "match_availability",
    "check_preference_invariants",
    "InvalidPreference",
    "format_slot",
    "format_slots",
    "Horizon",
    "resolve_horizon",
]
