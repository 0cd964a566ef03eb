"""
Request handlers for the two scheduling operations.

Transport-agnostic: each handler takes an already-decoded JSON body and
the caller's IP and returns a HandlerResult (HTTP status + JSON payload).
Every failure is translated into ``{"success": false, "error", "code"}``;
nothing propagates to the transport layer.

Usage:
    service = create_service()
    result = service.match_availability(body, client_ip="203.0.113.7")
    result.status_code, result.body
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from intake_scheduling.analytics import log_event
from intake_scheduling.config import AppConfig, settings
from intake_scheduling.logging_context import get_request_logger, new_request_id, set_request_id
from intake_scheduling.matching import InvalidPreference, format_slots, match_availability
from intake_scheduling.schemas.preference_schema import PreferenceValidationError, parse_preferences
from intake_scheduling.tools.availability import (
    AvailabilityRepository,
    CsvAvailabilitySource,
    LoadFailure,
)
from intake_scheduling.tools.interpreter import (
    OracleRateLimited,
    OracleResponseError,
    OracleTimeout,
    OracleUnavailable,
    SchedulingInterpreter,
    create_interpreter,
)
from intake_scheduling.tools.rate_limiter import FixedWindowRateLimiter, RateLimiter
from intake_scheduling.utils import is_valid_timezone

logger = get_request_logger(__name__)

MIN_INPUT_LENGTH = 10
MAX_INPUT_LENGTH = 500

RETRY_LATER = "Service temporarily unavailable. Please try again in a moment."
REPHRASE = "Unable to process input. Please try rephrasing your availability."


@dataclass(frozen=True)
class HandlerResult:
    status_code: int
    body: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status_code < 400


def error_result(status_code: int, message: str, code: str) -> HandlerResult:
    return HandlerResult(status_code, {"success": False, "error": message, "code": code})


def client_ip_from_headers(headers: Mapping[str, str]) -> str:
    """First ``x-forwarded-for`` hop, else ``x-real-ip``, else ``"unknown"``."""
    normalized = {key.lower(): value for key, value in headers.items()}
    forwarded = normalized.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    return normalized.get("x-real-ip", "").strip() or "unknown"


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


# ---------------------------------------------------------------------- #
# Request validation
# ---------------------------------------------------------------------- #

def validate_interpret_request(body: Any) -> Optional[HandlerResult]:
    """Return an error result for a malformed interpret request, else None."""
    if not isinstance(body, dict):
        return error_result(400, "Request body must be an object", "INVALID_REQUEST")

    user_input = body.get("userInput")
    if not isinstance(user_input, str):
        return error_result(400, "userInput must be a string", "INVALID_INPUT")
    length = len(user_input.strip())
    if length < MIN_INPUT_LENGTH:
        return error_result(
            400, f"userInput must be at least {MIN_INPUT_LENGTH} characters", "INPUT_TOO_SHORT"
        )
    if length > MAX_INPUT_LENGTH:
        return error_result(
            400, f"userInput must be at most {MAX_INPUT_LENGTH} characters", "INPUT_TOO_LONG"
        )

    user_timezone = body.get("userTimezone")
    if not isinstance(user_timezone, str):
        return error_result(400, "userTimezone must be a string", "INVALID_TIMEZONE")
    if not is_valid_timezone(user_timezone):
        return error_result(400, "userTimezone must be a valid IANA timezone", "INVALID_TIMEZONE")
    return None


def _organization_id(body: dict[str, Any], default: int) -> Optional[int]:
    raw = body.get("organizationId", default)
    # bool is an int subclass; reject it explicitly
    if isinstance(raw, bool) or not isinstance(raw, int):
        return None
    return raw


class SchedulingService:
    """Wires repository, interpreter and rate limiter behind the two handlers."""

    def __init__(
        self,
        repository: AvailabilityRepository,
        interpreter: Optional[SchedulingInterpreter],
        rate_limiter: RateLimiter,
        config: Optional[AppConfig] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.repository = repository
        self.interpreter = interpreter
        self.rate_limiter = rate_limiter
        self.config = config or settings
        self._clock = clock

    # ------------------------------------------------------------------ #
    # interpret-scheduling
    # ------------------------------------------------------------------ #

    async def interpret_scheduling(self, body: Any, client_ip: str) -> HandlerResult:
        set_request_id(new_request_id())
        started = time.monotonic()

        if not self.rate_limiter.allow(client_ip):
            log_event("interpretation_rate_limited")
            return error_result(503, RETRY_LATER, "RATE_LIMIT_EXCEEDED")

        invalid = validate_interpret_request(body)
        if invalid is not None:
            log_event("interpretation_rejected", code=invalid.body["code"])
            return invalid

        if self.interpreter is None:
            logger.error("Interpretation requested but no oracle client is configured")
            return error_result(503, RETRY_LATER, "SERVICE_UNAVAILABLE")

        try:
            result = await self.interpreter.interpret(
                body["userInput"].strip(), body["userTimezone"], now=self._clock()
            )
        except OracleTimeout:
            logger.warning("Interpretation timed out")
            return self._interpret_failure(started, 504, "Request took too long. Please try again.", "TIMEOUT")
        except OracleRateLimited:
            logger.warning("Interpretation provider rate limited")
            return self._interpret_failure(started, 503, RETRY_LATER, "RATE_LIMIT_EXCEEDED")
        except OracleUnavailable:
            logger.exception("Interpretation provider unreachable")
            return self._interpret_failure(
                started,
                500,
                "Unable to connect. Please check your internet connection and try again.",
                "NETWORK_ERROR",
            )
        except OracleResponseError as exc:
            logger.warning("Unparseable interpretation: %s", exc)
            return self._interpret_failure(started, 400, REPHRASE, "PARSE_ERROR")
        except PreferenceValidationError as exc:
            logger.warning("Interpretation failed validation: %s", exc)
            return self._interpret_failure(started, 400, REPHRASE, "VALIDATION_ERROR")
        except Exception:
            logger.exception("Unexpected error in interpret-scheduling")
            return self._interpret_failure(
                started, 500, "Unable to process input. Please try again.", "INTERNAL_ERROR"
            )

        log_event(
            "interpretation_success",
            duration_ms=_elapsed_ms(started),
            attempts=result.attempts,
            model=result.model,
            total_tokens=result.usage.total,
        )
        return HandlerResult(
            200, {"success": True, "interpretedPreferences": result.preferences.to_payload()}
        )

    def _interpret_failure(self, started: float, status: int, message: str, code: str) -> HandlerResult:
        log_event("interpretation_error", code=code, duration_ms=_elapsed_ms(started))
        return error_result(status, message, code)

    # ------------------------------------------------------------------ #
    # match-availability
    # ------------------------------------------------------------------ #

    def match_availability(self, body: Any, client_ip: str) -> HandlerResult:
        set_request_id(new_request_id())
        started = time.monotonic()

        if not self.rate_limiter.allow(client_ip):
            log_event("matching_rate_limited")
            return error_result(503, RETRY_LATER, "RATE_LIMIT_EXCEEDED")

        if not isinstance(body, dict):
            return error_result(400, "Request body must be an object", "INVALID_REQUEST")

        raw_preferences = body.get("interpretedPreferences")
        if not isinstance(raw_preferences, dict):
            return error_result(400, "interpretedPreferences must be an object", "INVALID_PREFERENCES")
        try:
            preferences = parse_preferences(raw_preferences)
        except PreferenceValidationError as exc:
            return error_result(
                400, f"Invalid preferences: {', '.join(exc.errors)}", "INVALID_PREFERENCES"
            )

        organization_id = _organization_id(body, self.config.matching.organization_id)
        if organization_id is None:
            return error_result(400, "organizationId must be a number", "INVALID_ORGANIZATION_ID")

        display_timezone = body.get("displayTimezone")
        if display_timezone is not None and not isinstance(display_timezone, str):
            return error_result(400, "displayTimezone must be a string", "INVALID_REQUEST")

        try:
            snapshot = self.repository.snapshot()
        except LoadFailure:
            logger.exception("Error loading availability data")
            log_event("matching_error", code="DATA_LOAD_ERROR", duration_ms=_elapsed_ms(started))
            return error_result(
                503, "Unable to load availability data. Please try again later.", "DATA_LOAD_ERROR"
            )

        try:
            reference_tz = preferences.reference_timezone(
                display_timezone or self.config.matching.fallback_timezone
            )
            slots = match_availability(
                preferences,
                snapshot.records,
                organization_id=organization_id,
                now=self._clock(),
                reference_timezone=reference_tz,
            )
            formatted = format_slots(slots, display_timezone or reference_tz)
        except InvalidPreference as exc:
            log_event("matching_error", code="INVALID_PREFERENCES", duration_ms=_elapsed_ms(started))
            return error_result(400, f"Invalid preferences: {exc}", "INVALID_PREFERENCES")
        except Exception:
            logger.exception("Unexpected error in match-availability")
            log_event("matching_error", code="INTERNAL_ERROR", duration_ms=_elapsed_ms(started))
            return error_result(500, "Unable to match availability. Please try again.", "INTERNAL_ERROR")

        log_event(
            "matching_success",
            duration_ms=_elapsed_ms(started),
            matches_found=len(formatted),
            organization_id=organization_id,
            records_considered=len(snapshot),
        )
        return HandlerResult(
            200, {"success": True, "matchedSlots": [slot.to_payload() for slot in formatted]}
        )

    def health(self) -> dict[str, Any]:
        return {
            "status": "ok",
            "service": self.config.service_name,
            "interpreter": self.interpreter is not None,
            "availability": self.repository.metadata(),
        }


def create_service(config: Optional[AppConfig] = None) -> SchedulingService:
    """Build a SchedulingService from configuration."""
    cfg = config or settings
    repository = AvailabilityRepository(
        CsvAvailabilitySource(cfg.data.availability_csv_path),
        fallback_timezone=cfg.matching.fallback_timezone,
        refresh_interval_seconds=cfg.data.refresh_interval_seconds,
    )
    limiter = FixedWindowRateLimiter(
        max_requests=cfg.rate_limit.max_requests,
        window_seconds=cfg.rate_limit.window_seconds,
    )
    return SchedulingService(repository, create_interpreter(cfg.oracle), limiter, cfg)
