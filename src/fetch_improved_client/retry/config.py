"""
Defaults, validation and backoff maths for the retry policy
"""
import asyncio
import random
from typing import Optional

from .types import BackoffStrategy, RetryConfig


DEFAULT_RETRY_CONFIG = RetryConfig()


def _undithered_delay(attempt: int, config: RetryConfig) -> float:
    if config.backoff_strategy == BackoffStrategy.CONSTANT:
        return config.base_delay_seconds
    if config.backoff_strategy == BackoffStrategy.LINEAR:
        return config.base_delay_seconds + config.linear_increment_seconds * attempt
    return config.base_delay_seconds * (2 ** attempt)


def calculate_backoff_delay(attempt: int, config: RetryConfig) -> float:
    """
    Seconds to wait after the given failed attempt (0 for the first).

    The strategy picks a nominal delay, capped at max_delay_seconds. Jitter
    then moves it uniformly within +/- jitter_factor/2 of itself:

        nominal * (1 - jitter/2) + random() * jitter * nominal

    The result never exceeds max_delay_seconds.
    """
    cap = config.max_delay_seconds
    nominal = min(cap, _undithered_delay(attempt, config))
    spread = config.jitter_factor * nominal
    return min(cap, nominal - spread / 2 + random.random() * spread)


def merge_config(config: Optional[RetryConfig] = None) -> RetryConfig:
    """Return config, or DEFAULT_RETRY_CONFIG when none was given."""
    return DEFAULT_RETRY_CONFIG if config is None else config


def validate_retry_config(config: RetryConfig) -> None:
    """Raise ValueError for settings the executor cannot honour."""
    if config.max_retries < 0:
        raise ValueError(f"max_retries must not be negative, got {config.max_retries}")
    if config.base_delay_seconds < 0 or config.max_delay_seconds < 0:
        raise ValueError("delays must not be negative")
    if not 0 <= config.jitter_factor <= 1:
        raise ValueError(f"jitter_factor must be within [0, 1], got {config.jitter_factor}")
    if config.max_elapsed_seconds is not None and config.max_elapsed_seconds <= 0:
        raise ValueError("max_elapsed_seconds must be positive when set")


async def async_sleep(seconds: float) -> None:
    # patched in tests to skip real waits
    await asyncio.sleep(seconds)
