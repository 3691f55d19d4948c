"""
Shared fixtures for fetch_improved_client tests.
"""
import logging

import pytest

from fetch_improved_client.clock import MockClock
from fetch_improved_client.retry import RetryConfig

from support import WIRE_LOGGER_NAME


@pytest.fixture
def wire_logger(caplog):
    """Logger for wire records, captured at debug level."""
    caplog.set_level(logging.DEBUG, logger=WIRE_LOGGER_NAME)
    return logging.getLogger(WIRE_LOGGER_NAME)


@pytest.fixture
def mock_clock():
    """Clock that advances only when slept on."""
    return MockClock(start=1000.0)


@pytest.fixture
def fast_retry():
    """Retry policy with near-zero, jitter-free delays."""
    return RetryConfig(
        max_retries=3,
        base_delay_seconds=0.001,
        max_delay_seconds=0.01,
        jitter_factor=0,
    )


@pytest.fixture
def no_proxy_env(monkeypatch):
    """Clear proxy variables so transport construction is deterministic."""
    for name in (
        "PROXY_URL",
        "HTTPS_PROXY", "https_proxy",
        "HTTP_PROXY", "http_proxy",
        "ALL_PROXY", "all_proxy",
        "NO_PROXY", "no_proxy",
    ):
        monkeypatch.delenv(name, raising=False)
