"""Error types shared by adapters, resilience services and the CLI.

Adapters translate library exceptions into TransientFailure (worth a retry)
or PermanentFailure (not worth a retry). The circuit breaker never raises
these to its caller; it reports them through a degraded GuardedResult.
"""

from enum import Enum


class BriefAIError(Exception):
    """Base class for all briefai errors."""


class TransientFailure(BriefAIError):
    """Network or API error that may succeed when retried (timeouts, 429, 5xx)."""


class PermanentFailure(BriefAIError):
    """Validation or non-retryable API error (bad credentials, malformed response)."""


class CircuitOpenFailure(BriefAIError):
    """The operation was not attempted because its circuit breaker is open."""

    def __init__(self, breaker_key: str):
        self.breaker_key = breaker_key
        super().__init__(f"Circuit '{breaker_key}' is open; call not attempted")


class ConfigurationError(BriefAIError):
    """Required configuration (API keys, credentials) is missing or invalid."""


class TokenLimitExceeded(BriefAIError):
    """The token budget for this process would be exceeded by the next call."""

    def __init__(self, used: int, requested: int, limit: int):
        self.used = used
        self.requested = requested
        self.limit = limit
        super().__init__(
            f"Token limit reached: {used} used + {requested} requested > {limit}"
        )


class FailureKind(str, Enum):
    """Why a guarded call produced a fallback value."""
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    CIRCUIT_OPEN = "circuit_open"


def classify_failure(error: BaseException) -> FailureKind:
    """Maps an exception onto the failure kind reported with fallbacks."""
    if isinstance(error, CircuitOpenFailure):
        return FailureKind.CIRCUIT_OPEN
    if isinstance(error, (PermanentFailure, ConfigurationError, TokenLimitExceeded)):
        return FailureKind.PERMANENT
    return FailureKind.TRANSIENT
