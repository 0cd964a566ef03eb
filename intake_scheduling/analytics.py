"""
Analytics event logging.

Events are emitted as structured dicts on a dedicated logger so they can
be shipped separately from operational logs. Payloads carry durations,
counts and error codes only, never the guardian's free text or any
identifier tied to a person.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from intake_scheduling.logging_context import get_request_id

logger = logging.getLogger("intake_scheduling.analytics")


def build_event(event: str, **data: Any) -> dict[str, Any]:
    """Assemble an analytics payload with a UTC timestamp and request ID."""
    return {
        "event": event,
        "request_id": get_request_id(),
        **data,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def log_event(event: str, **data: Any) -> dict[str, Any]:
    """Log an analytics event and return the payload that was logged."""
    payload = build_event(event, **data)
    logger.info("Analytics: %s", payload)
    return payload
