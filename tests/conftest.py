"""Shared test fixtures and helpers."""

from datetime import date, datetime, timezone
from types import SimpleNamespace
from typing import Any, Optional

import pytest

from intake_scheduling.config import OracleConfig
from intake_scheduling.schemas.availability_schema import AvailabilityRecord
from intake_scheduling.schemas.preference_schema import PreferenceModel
from intake_scheduling.tools.availability import AvailabilityRepository, InMemoryAvailabilitySource
from intake_scheduling.tools.rate_limiter import FixedWindowRateLimiter
from intake_scheduling.utils import localize

PACIFIC = "America/Los_Angeles"
EASTERN = "America/New_York"
ORG_ID = 85685

# Monday 2025-10-13, 05:00 Pacific
NOW = datetime(2025, 10, 13, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rate_limiter(clock):
    return FixedWindowRateLimiter(max_requests=10, window_seconds=60, clock=clock)


def local(value: str, tz_name: str = PACIFIC) -> datetime:
    """Aware UTC datetime for a wall-clock ISO string in ``tz_name``."""
    return localize(datetime.fromisoformat(value), tz_name).astimezone(timezone.utc)


def make_record(
    id: int = 1,
    owner_id: int = 100,
    start: str = "2025-10-14T09:00",
    end: str = "2025-10-14T10:00",
    tz: str = PACIFIC,
    organization_id: int = ORG_ID,
    day_of_week: Optional[int] = None,
    is_repeating: bool = False,
    end_on: Optional[date] = None,
    location_id: Optional[int] = None,
    deleted_at: Optional[datetime] = None,
) -> AvailabilityRecord:
    """Helper to create an AvailabilityRecord from wall-clock strings."""
    return AvailabilityRecord(
        id=id,
        owner_id=owner_id,
        range_start=local(start, tz),
        range_end=local(end, tz),
        timezone=tz,
        organization_id=organization_id,
        day_of_week=day_of_week,
        is_repeating=is_repeating,
        end_on=end_on,
        location_id=location_id,
        deleted_at=deleted_at,
    )


def preference_payload(**overrides: Any) -> dict[str, Any]:
    """Camel-case preference JSON with no restrictions unless overridden."""
    payload: dict[str, Any] = {
        "daysOfWeek": [],
        "timeRanges": [],
        "dateConstraints": None,
        "specificDates": [],
        "recurringPattern": "none",
    }
    payload.update(overrides)
    return payload


def make_preferences(**overrides: Any) -> PreferenceModel:
    return PreferenceModel.model_validate(preference_payload(**overrides))


def time_range(start: str, end: str, tz: str = PACIFIC) -> dict[str, str]:
    return {"start": start, "end": end, "timezone": tz}


def make_row(**overrides: Any) -> dict[str, str]:
    """Raw CSV-style row with valid defaults."""
    row = {
        "id": "1",
        "user_id": "100",
        "range_start": "2025-10-14 09:00:00",
        "range_end": "2025-10-14 10:00:00",
        "timezone": PACIFIC,
        "day_of_week": "",
        "is_repeating": "false",
        "end_on": "",
        "appointment_location_id": "",
        "parent_organization_id": str(ORG_ID),
        "deleted_at": "",
    }
    row.update(overrides)
    return row


def make_repository(records_rows: list[dict[str, str]], **kwargs: Any) -> AvailabilityRepository:
    return AvailabilityRepository(InMemoryAvailabilitySource(records_rows), **kwargs)


# ---------------------------------------------------------------------- #
# Fake OpenAI client
# ---------------------------------------------------------------------- #

def make_completion(content: Optional[str], model: str = "gpt-3.5-turbo") -> SimpleNamespace:
    """Shape-compatible stand-in for a chat completion response."""
    return SimpleNamespace(
        model=model,
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(prompt_tokens=120, completion_tokens=40, total_tokens=160),
    )


class FakeCompletions:
    """Returns (or raises) the queued outcomes in order and records each call."""

    def __init__(self, outcomes: list[Any]) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeOpenAIClient:
    def __init__(self, outcomes: list[Any]) -> None:
        self.completions = FakeCompletions(outcomes)
        self.chat = SimpleNamespace(completions=self.completions)


class SleepRecorder:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def oracle_config():
    return OracleConfig(
        api_key="test-key",
        llm_model="gpt-3.5-turbo",
        llm_temperature=0.3,
        timeout_seconds=5.0,
        max_retries=3,
        backoff_base_seconds=1.0,
    )
