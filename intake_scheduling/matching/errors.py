"""Exceptions raised by the matching engine."""


class InvalidPreference(ValueError):
    """A preference violates an invariant the engine depends on.

    This is a caller error, never a retryable condition. "No matches" is
    not an error and never raises.
    """
