"""Circuit breakers keyed by operation class.

A breaker stops calling an operation that keeps failing and serves the
caller's fallback instead, until a recovery timeout has passed. Each
operation class ("serp", "llm", ...) owns its own breaker so one failing
API never trips another.

    closed --[failures >= threshold]--> open
    open --[elapsed > recovery timeout]--> half_open
    half_open --[trial success]--> closed
    half_open --[trial failure]--> open (timer restarts)
"""

import inspect
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar, Union

from briefai.domain.events.fanout_events import (
    CircuitStateChanged,
    EventSink,
    FallbackUsed,
    log_event,
)
from briefai.domain.models.common import BreakerKey
from briefai.domain.models.errors import CircuitOpenFailure, classify_failure
from briefai.domain.models.resilience import CircuitPhase, CircuitState, GuardedResult
from briefai.infrastructure.resilience.api_retry import ApiRetryService

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_FAILURE_THRESHOLD = 5
DEFAULT_RECOVERY_TIMEOUT_S = 60.0

Fallback = Callable[[], Union[T, Awaitable[T]]]


class CircuitBreaker:
    """Three-state failure governor around one operation class."""

    def __init__(
        self,
        key: BreakerKey,
        retry_service: ApiRetryService,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        recovery_timeout_s: float = DEFAULT_RECOVERY_TIMEOUT_S,
        clock: Callable[[], float] = time.time,
        event_sink: EventSink = log_event,
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self.key = key
        self.retry_service = retry_service
        self.failure_threshold = failure_threshold
        self.recovery_timeout_ms = int(recovery_timeout_s * 1000)
        self.state = CircuitState()
        self._clock = clock
        self._event_sink = event_sink
        self._trial_in_flight = False

    @property
    def phase(self) -> CircuitPhase:
        return self.state.phase

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _transition(self, new_phase: CircuitPhase) -> None:
        old_phase = self.state.phase
        if old_phase == new_phase:
            return
        self.state.phase = new_phase
        logger.info(
            f"Circuit '{self.key}' {old_phase.value} -> {new_phase.value} "
            f"(failures={self.state.consecutive_failures})"
        )
        self._event_sink(CircuitStateChanged(
            breaker_key=self.key,
            old_phase=old_phase.value,
            new_phase=new_phase.value,
            consecutive_failures=self.state.consecutive_failures,
        ))

    def _admit(self) -> bool:
        """Decides whether the next call may run; may move open -> half_open."""
        if self.state.phase == CircuitPhase.OPEN:
            elapsed = self._now_ms() - self.state.last_failure_at_ms
            if elapsed <= self.recovery_timeout_ms:
                return False
            self._transition(CircuitPhase.HALF_OPEN)
        if self.state.phase == CircuitPhase.HALF_OPEN:
            # Only one trial call while half open
            if self._trial_in_flight:
                return False
            self._trial_in_flight = True
        return True

    def _record_success(self) -> None:
        if self.state.phase == CircuitPhase.HALF_OPEN:
            self.state.consecutive_failures = 0
            self._transition(CircuitPhase.CLOSED)
        elif self.state.phase == CircuitPhase.CLOSED:
            self.state.consecutive_failures = 0

    def _record_failure(self) -> None:
        self.state.consecutive_failures += 1
        self.state.last_failure_at_ms = self._now_ms()
        if self.state.phase == CircuitPhase.HALF_OPEN:
            self._transition(CircuitPhase.OPEN)
        elif (
            self.state.phase == CircuitPhase.CLOSED
            and self.state.consecutive_failures >= self.failure_threshold
        ):
            self._transition(CircuitPhase.OPEN)

    async def _fallback(self, fallback: Fallback, error: BaseException) -> GuardedResult:
        kind = classify_failure(error)
        self._event_sink(FallbackUsed(
            breaker_key=self.key, failure_kind=kind.value, error_message=str(error)
        ))
        value = fallback()
        if inspect.isawaitable(value):
            value = await value
        return GuardedResult(value=value, degraded=True, failure_kind=kind, error=error)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        fallback: Fallback,
        operation_name: Optional[str] = None,
    ) -> GuardedResult:
        """Runs ``operation`` through the retry service unless the circuit is open.

        Never raises for operation failures: any error, or an open circuit,
        resolves to ``fallback()`` wrapped in a degraded GuardedResult. The
        fallback itself must not raise.
        """
        if not self._admit():
            logger.debug(f"Circuit '{self.key}' open, serving fallback")
            return await self._fallback(fallback, CircuitOpenFailure(self.key))

        was_trial = self.state.phase == CircuitPhase.HALF_OPEN
        try:
            value = await self.retry_service.execute_with_retry(
                operation, operation_name=operation_name or self.key
            )
        except Exception as e:
            logger.warning(f"Guarded call '{operation_name or self.key}' failed: {e}")
            self._record_failure()
            return await self._fallback(fallback, e)
        finally:
            if was_trial:
                self._trial_in_flight = False

        self._record_success()
        return GuardedResult(value=value)


class CircuitBreakerRegistry:
    """Hands out one CircuitBreaker per operation class key."""

    def __init__(
        self,
        retry_service: ApiRetryService,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        recovery_timeout_s: float = DEFAULT_RECOVERY_TIMEOUT_S,
        clock: Callable[[], float] = time.time,
        event_sink: EventSink = log_event,
    ):
        self.retry_service = retry_service
        self.failure_threshold = failure_threshold
        self.recovery_timeout_s = recovery_timeout_s
        self._clock = clock
        self._event_sink = event_sink
        self._breakers: Dict[str, CircuitBreaker] = {}

    def get(self, key: BreakerKey) -> CircuitBreaker:
        breaker = self._breakers.get(key)
        if breaker is None:
            breaker = CircuitBreaker(
                key,
                retry_service=self.retry_service,
                failure_threshold=self.failure_threshold,
                recovery_timeout_s=self.recovery_timeout_s,
                clock=self._clock,
                event_sink=self._event_sink,
            )
            self._breakers[key] = breaker
        return breaker

    async def run(
        self,
        key: BreakerKey,
        operation: Callable[[], Awaitable[T]],
        fallback: Fallback,
        operation_name: Optional[str] = None,
    ) -> GuardedResult:
        return await self.get(key).run(operation, fallback, operation_name=operation_name)

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        return {
            key: {
                "phase": b.state.phase.value,
                "consecutive_failures": b.state.consecutive_failures,
                "last_failure_at_ms": b.state.last_failure_at_ms,
            }
            for key, b in self._breakers.items()
        }
