"""Domain models for the resilience services (circuit breaker state, guarded results)."""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

from .errors import FailureKind

T = TypeVar("T")


class CircuitPhase(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitState:
    """Mutable breaker state; one instance per breaker key, lives for the process."""
    consecutive_failures: int = 0
    last_failure_at_ms: int = 0
    phase: CircuitPhase = CircuitPhase.CLOSED


@dataclass(frozen=True)
class GuardedResult(Generic[T]):
    """Value returned by a circuit breaker call.

    ``degraded`` is False only when the guarded operation itself succeeded.
    Fallback values carry the failure kind and the error that caused them;
    an open breaker reports a CircuitOpenFailure.
    """
    value: T
    degraded: bool = False
    failure_kind: Optional[FailureKind] = None
    error: Optional[BaseException] = None

    @property
    def failure_reason(self) -> Optional[str]:
        if not self.degraded:
            return None
        if self.error is not None:
            return f"{type(self.error).__name__}: {self.error}"
        return self.failure_kind.value if self.failure_kind else "unknown"
