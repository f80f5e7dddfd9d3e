"""Domain Events related to API calls and resilience.

Emitted when retries are scheduled, when a rate limit forces a pause, when
retries run out, and on cache hits and misses.
"""

from dataclasses import dataclass, field
import logging
import time
from typing import Callable, Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed call."""
    operation: str
    attempt_number: int
    delay_seconds: float
    error_code: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class RateLimitWait(DomainEvent):
    """Event triggered when a call pauses for a server supplied retry-after."""
    operation: str
    attempt_number: int
    wait_time_seconds: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class RetriesExhausted(DomainEvent):
    """Event triggered when a call fails definitively."""
    operation: str
    attempts: int
    error_type: str
    error_message: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class CacheHit(DomainEvent):
    key: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class CacheMiss(DomainEvent):
    key: str
    timestamp: float = field(default_factory=time.time)


EventSink = Callable[[DomainEvent], None]

logger = logging.getLogger(__name__)


def log_event(event: DomainEvent) -> None:
    """Default event sink: events only go to the debug log."""
    logger.debug(f"EVENT: {event}")
