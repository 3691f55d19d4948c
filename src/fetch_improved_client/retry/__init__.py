"""
Retry policy with backoff and jitter.
"""
from .types import (
    RetryConfig,
    RetryOptions,
    RetryResult,
    RetryEvent,
    RetryEventListener,
    BackoffStrategy,
)
from .config import (
    DEFAULT_RETRY_CONFIG,
    calculate_backoff_delay,
    merge_config,
    validate_retry_config,
    async_sleep,
)
from .executor import (
    RetryExecutor,
    create_retry_executor,
)


__all__ = [
    # Types
    "RetryConfig",
    "RetryOptions",
    "RetryResult",
    "RetryEvent",
    "RetryEventListener",
    "BackoffStrategy",
    # Config
    "DEFAULT_RETRY_CONFIG",
    "calculate_backoff_delay",
    "merge_config",
    "validate_retry_config",
    "async_sleep",
    # Executor
    "RetryExecutor",
    "create_retry_executor",
]
