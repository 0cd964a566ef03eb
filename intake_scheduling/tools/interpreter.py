"""
Oracle client: turns a guardian's free-text availability into a
validated PreferenceModel via an OpenAI JSON-mode chat completion.

Retry policy: each attempt is bounded by a timeout; failures classified
as retryable are retried with exponential backoff (``base * 2**attempt``).
Timeouts and rate limits are definitive and surface immediately.
"""

import asyncio
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

import openai
from openai import AsyncOpenAI

from intake_scheduling.analytics import log_event
from intake_scheduling.config import OracleConfig, settings
from intake_scheduling.logging_context import get_request_logger
from intake_scheduling.prompts.scheduling_prompts import build_messages
from intake_scheduling.schemas.preference_schema import PreferenceModel, parse_preferences
from intake_scheduling.utils import to_zone

logger = get_request_logger(__name__)

RATE_LIMIT_STATUS = 429
RATE_LIMIT_CODE = "rate_limit_exceeded"


class OracleError(Exception):
    """Base class for failures talking to the interpretation model."""


class OracleTimeout(OracleError):
    """The model did not answer within the configured timeout."""


class OracleRateLimited(OracleError):
    """The model provider rejected the call for quota or rate reasons."""


class OracleUnavailable(OracleError):
    """Transport or provider failure that persisted through all retries."""


class OracleResponseError(OracleError):
    """The model answered, but not with a single JSON object."""


def is_timeout(error: BaseException) -> bool:
    return isinstance(error, (asyncio.TimeoutError, openai.APITimeoutError))


def is_rate_limited(error: BaseException) -> bool:
    if isinstance(error, openai.RateLimitError):
        return True
    if getattr(error, "status_code", None) == RATE_LIMIT_STATUS:
        return True
    return getattr(error, "code", None) == RATE_LIMIT_CODE


def is_retryable(error: BaseException) -> bool:
    """Classify an oracle call failure.

    Timeouts and rate limits are definitive rejections and must not be
    retried; every other failure is retried with backoff.
    """
    return not (is_timeout(error) or is_rate_limited(error))


def _definitive_error(error: BaseException) -> OracleError:
    if is_timeout(error):
        return OracleTimeout("Interpretation request timed out")
    return OracleRateLimited("Interpretation provider rate limited the request")


@dataclass(frozen=True)
class TokenUsage:
    prompt: int = 0
    completion: int = 0
    total: int = 0


@dataclass(frozen=True)
class InterpretationResult:
    """Validated preference plus non-identifying call metadata."""

    preferences: PreferenceModel
    model: str
    usage: TokenUsage
    attempts: int


class SchedulingInterpreter:
    """Wraps an async OpenAI-compatible client with the retry policy."""

    def __init__(
        self,
        client: Any,
        config: Optional[OracleConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._config = config or settings.oracle
        self._sleep = sleep

    async def interpret(
        self, user_input: str, user_timezone: str, now: Optional[datetime] = None
    ) -> InterpretationResult:
        """Interpret free text into a validated preference.

        Raises:
            OracleTimeout, OracleRateLimited, OracleUnavailable: call failures.
            OracleResponseError: empty or non-JSON content.
            PreferenceValidationError: JSON that does not match the contract.
        """
        local_now = to_zone(now or datetime.now(timezone.utc), user_timezone)
        messages = build_messages(
            user_input, f"{local_now:%Y-%m-%d}", f"{local_now:%H:%M}", user_timezone
        )

        completion, attempts = await self._complete_with_retry(messages)
        data = self._parse_content(completion)
        preferences = parse_preferences(data)

        usage = getattr(completion, "usage", None)
        return InterpretationResult(
            preferences=preferences,
            model=str(getattr(completion, "model", self._config.llm_model)),
            usage=TokenUsage(
                prompt=getattr(usage, "prompt_tokens", 0) or 0,
                completion=getattr(usage, "completion_tokens", 0) or 0,
                total=getattr(usage, "total_tokens", 0) or 0,
            ),
            attempts=attempts,
        )

    async def _complete_with_retry(self, messages: list[dict[str, str]]) -> tuple[Any, int]:
        cfg = self._config
        last_error: Optional[BaseException] = None

        for attempt in range(cfg.max_retries):
            try:
                completion = await asyncio.wait_for(
                    self._client.chat.completions.create(
                        model=cfg.llm_model,
                        messages=messages,
                        response_format={"type": "json_object"},
                        temperature=cfg.llm_temperature,
                    ),
                    timeout=cfg.timeout_seconds,
                )
                return completion, attempt + 1
            except Exception as exc:
                last_error = exc
                if not is_retryable(exc):
                    raise _definitive_error(exc) from exc
                if attempt < cfg.max_retries - 1:
                    delay = cfg.backoff_base_seconds * (2 ** attempt)
                    logger.warning(
                        "Oracle call failed (attempt %d/%d), retrying in %.1fs: %s",
                        attempt + 1, cfg.max_retries, delay, type(exc).__name__,
                    )
                    log_event("api_retry", attempt=attempt + 1, error=type(exc).__name__)
                    await self._sleep(delay)

        raise OracleUnavailable(
            f"Interpretation failed after {cfg.max_retries} attempt(s)"
        ) from last_error

    @staticmethod
    def _parse_content(completion: Any) -> Any:
        try:
            content = completion.choices[0].message.content
        except (AttributeError, IndexError, TypeError):
            content = None
        if not content:
            raise OracleResponseError("No content in model response")
        try:
            return json.loads(content)
        except json.JSONDecodeError as exc:
            raise OracleResponseError(f"Model response is not valid JSON: {exc.msg}") from None


def create_interpreter(config: Optional[OracleConfig] = None) -> Optional[SchedulingInterpreter]:
    """Build an interpreter backed by AsyncOpenAI, or None without an API key."""
    cfg = config or settings.oracle
    if not cfg.api_key:
        logger.warning("OPENAI_API_KEY is not set; interpretation is unavailable")
        return None
    # retries are owned by SchedulingInterpreter, not the SDK
    client = AsyncOpenAI(api_key=cfg.api_key, timeout=cfg.timeout_seconds, max_retries=0)
    return SchedulingInterpreter(client, cfg)
