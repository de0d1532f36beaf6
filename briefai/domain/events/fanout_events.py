"""Domain Events raised by the resilience layer and the fan-out service.

Events are plain dataclasses handed to an ``EventSink`` callable. The
default sink only logs them; tests pass a list's ``append`` to record them.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


@dataclass
class RetryScheduled(DomainEvent):
    """A failed attempt will be retried after ``delay_seconds``."""
    operation: str
    attempt_number: int
    delay_seconds: float
    error_type: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class CircuitStateChanged(DomainEvent):
    """A breaker moved between closed, open and half_open."""
    breaker_key: str
    old_phase: str
    new_phase: str
    consecutive_failures: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class FallbackUsed(DomainEvent):
    """A guarded call resolved to its fallback value."""
    breaker_key: str
    failure_kind: str
    error_message: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class BatchCompleted(DomainEvent):
    """One batch of the scheduler settled."""
    batch_index: int
    batch_count: int
    size: int
    failures: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class QueryCompleted(DomainEvent):
    """One fan-out query produced its outcome."""
    query: str
    kind: str
    succeeded: bool
    from_cache: bool = False
    timestamp: float = field(default_factory=time.time)


EventSink = Callable[[Any], None]


def log_event(event: DomainEvent) -> None:
    """Default sink: events only go to the debug log."""
    logger.debug(f"EVENT: {event}")
