from intake_scheduling.tools.availability import (
    AvailabilityRepository,
    CsvAvailabilitySource,
    InMemoryAvailabilitySource,
    LoadFailure,
    RowRejected,
    parse_row,
)
from intake_scheduling.tools.interpreter import (
    OracleError,
    OracleRateLimited,
    OracleResponseError,
    OracleTimeout,
    OracleUnavailable,
    SchedulingInterpreter,
    create_interpreter,
    is_retryable,
)
from intake_scheduling.tools.rate_limiter import FixedWindowRateLimiter, RateLimiter

__all__ = [
    "AvailabilityRepository",
    "CsvAvailabilitySource",
    "InMemoryAvailabilitySource",
    "LoadFailure",
    "RowRejected",
    "parse_row",
    "OracleError",
    "OracleRateLimited",
    "OracleResponseError",
    "OracleTimeout",
    "OracleUnavailable",
    "SchedulingInterpreter",
    "create_interpreter",
    "is_retryable",
    "FixedWindowRateLimiter",
    "RateLimiter",
]
