"""
Centralized configuration with environment variable overrides.

Matching bounds, data source settings, oracle model settings and
rate-limit thresholds are all configurable here. Nothing is hardcoded
in the engine, repository or handlers.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from intake_scheduling.logging_context import RequestIdFilter
from intake_scheduling.utils import DEFAULT_TIMEZONE, is_valid_timezone

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class MatchingConfig:
    """Bounds and defaults for the availability matching engine."""

    fallback_timezone: str = os.getenv("FALLBACK_TIMEZONE", DEFAULT_TIMEZONE)
    horizon_days: int = _safe_int("HORIZON_DAYS", "60")
    max_results: int = _safe_int("MAX_MATCH_RESULTS", "25")
    slot_minutes: int = _safe_int("SLOT_DURATION_MINUTES", "0")
    organization_id: int = _safe_int("ORGANIZATION_ID", "85685")


@dataclass(frozen=True)
class DataConfig:
    """Availability dataset location and cache refresh interval."""

    availability_csv_path: str = os.getenv(
        "AVAILABILITY_CSV_PATH", "data/clinician_availabilities.csv"
    )
    refresh_interval_seconds: float = _safe_float("AVAILABILITY_REFRESH_SECONDS", "300")


@dataclass(frozen=True)
class OracleConfig:
    """LLM settings for free-text preference interpretation."""

    api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
    llm_model: str = os.getenv("LLM_MODEL", "gpt-3.5-turbo")
    llm_temperature: float = _safe_float("LLM_TEMPERATURE", "0.3")
    timeout_seconds: float = _safe_float("LLM_TIMEOUT_SECONDS", "5")
    max_retries: int = _safe_int("LLM_MAX_RETRIES", "3")
    backoff_base_seconds: float = _safe_float("LLM_BACKOFF_BASE_SECONDS", "1")


@dataclass(frozen=True)
class RateLimitConfig:
    """Fixed-window limits applied per client IP on both endpoints."""

    max_requests: int = _safe_int("RATE_LIMIT_MAX_REQUESTS", "10")
    window_seconds: float = _safe_float("RATE_LIMIT_WINDOW_SECONDS", "60")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    matching: MatchingConfig = field(default_factory=MatchingConfig)
    data: DataConfig = field(default_factory=DataConfig)
    oracle: OracleConfig = field(default_factory=OracleConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "intake-scheduling")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if not is_valid_timezone(config.matching.fallback_timezone):
        raise ValueError(
            "FALLBACK_TIMEZONE must be a valid IANA timezone, "
            f"got {config.matching.fallback_timezone!r}"
        )
    if config.matching.horizon_days < 1:
        raise ValueError(
            f"HORIZON_DAYS must be >= 1, got {config.matching.horizon_days}"
        )
    if config.matching.max_results < 1:
        raise ValueError(
            f"MAX_MATCH_RESULTS must be >= 1, got {config.matching.max_results}"
        )
    if config.matching.slot_minutes < 0:
        raise ValueError(
            f"SLOT_DURATION_MINUTES must be >= 0, got {config.matching.slot_minutes}"
        )
    if config.data.refresh_interval_seconds <= 0:
        raise ValueError(
            "AVAILABILITY_REFRESH_SECONDS must be > 0, "
            f"got {config.data.refresh_interval_seconds}"
        )
    if not 0.0 <= config.oracle.llm_temperature <= 2.0:
        raise ValueError(
            f"LLM_TEMPERATURE must be between 0.0 and 2.0, got {config.oracle.llm_temperature}"
        )
    if config.oracle.timeout_seconds <= 0:
        raise ValueError(
            f"LLM_TIMEOUT_SECONDS must be > 0, got {config.oracle.timeout_seconds}"
        )
    if config.oracle.max_retries < 1:
        raise ValueError(
            f"LLM_MAX_RETRIES must be >= 1, got {config.oracle.max_retries}"
        )
    if config.oracle.backoff_base_seconds < 0:
        raise ValueError(
            "LLM_BACKOFF_BASE_SECONDS must be >= 0, "
            f"got {config.oracle.backoff_base_seconds}"
        )
    if config.rate_limit.max_requests < 1:
        raise ValueError(
            f"RATE_LIMIT_MAX_REQUESTS must be >= 1, got {config.rate_limit.max_requests}"
        )
    if config.rate_limit.window_seconds <= 0:
        raise ValueError(
            f"RATE_LIMIT_WINDOW_SECONDS must be > 0, got {config.rate_limit.window_seconds}"
        )


LOG_FORMAT = "%(asctime)s [%(name)s] [%(request_id)s] %(levelname)s: %(message)s"


def build_log_handler() -> logging.Handler:
    """Console handler whose records always carry a ``request_id``."""
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler.addFilter(RequestIdFilter())
    return handler


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        handlers=[build_log_handler()],
    )
    logger.info("Configuration loaded for '%s'", config.service_name)
    return config


# Singleton instance
settings = load_config()
