"""
Data types shared by the retry policy modules
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Generic, Literal, Optional, TypeVar


T = TypeVar("T")


class BackoffStrategy(str, Enum):
    """How the wait grows from one failed attempt to the next"""
    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    CONSTANT = "constant"


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy for one client. All durations in seconds."""

    max_retries: int = 3
    """Extra attempts after the first one fails. 3 means up to 4 attempts."""

    base_delay_seconds: float = 1.0
    """Wait after the first failure, before jitter."""

    max_delay_seconds: float = 30.0
    """Upper bound on any single wait."""

    jitter_factor: float = 0.5
    """Spread applied around each wait, 0 disables it, 1 is the widest."""

    max_elapsed_seconds: Optional[float] = None
    """Stop retrying when the next wait would end past this point. None: no bound."""

    backoff_strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL

    linear_increment_seconds: float = 1.0
    """Step added per attempt under BackoffStrategy.LINEAR."""

    @property
    def max_attempts(self) -> int:
        """Total number of attempts, including the first one."""
        return self.max_retries + 1


@dataclass
class RetryOptions:
    """Per-call overrides for RetryExecutor.execute"""

    max_retries: Optional[int] = None
    metadata: Optional[dict[str, Any]] = None
    """Attached to every event, e.g. method and url"""
    should_retry: Optional[Callable[[Exception, int], bool]] = None
    """Called with (error, attempt); return False to stop early"""


@dataclass
class RetryResult(Generic[T]):
    """Outcome of a successful execute() call"""

    result: T
    retries: int
    """Failed attempts before the successful one"""
    total_time_seconds: float
    delay_time_seconds: float
    """Portion of total_time_seconds spent in backoff waits"""


EventType = Literal[
    "attempt:start",
    "attempt:success",
    "attempt:fail",
    "retry:wait",
    "retry:abort",
]


@dataclass
class RetryEvent:
    """Progress notification passed to executor listeners"""

    type: EventType
    attempt: int
    """0 for the first attempt"""
    data: dict[str, Any] = field(default_factory=dict)


RetryEventListener = Callable[[RetryEvent], None]
