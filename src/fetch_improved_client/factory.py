"""
Factory functions for creating improved clients.
"""
import logging
from typing import Iterable, Optional

import httpx

from .client import AsyncImprovedClient
from .clock import Clock
from .config import BaseTransportConfig, ClientConfig, default_transport_config
from .retry import RetryConfig
from .types import TransportWrapper


def create_client(
    *,
    rate_limit_requests_per_second: int = 1,
    clock: Optional[Clock] = None,
    wire_logger: Optional[logging.Logger] = None,
    transport_wrappers: Iterable[TransportWrapper] = (),
    retry: Optional[RetryConfig] = None,
    transport: Optional[BaseTransportConfig] = None,
    base_transport: Optional[httpx.AsyncBaseTransport] = None,
    follow_redirects: bool = True,
) -> AsyncImprovedClient:
    """
    Create a rate-limited, retrying async HTTP client.

    Args:
        rate_limit_requests_per_second: Admission rate. Default: 1
        clock: Time source for the rate limiter. Default: real clock
        wire_logger: Enables wire logging into this logger when given
        transport_wrappers: Wrappers applied in order, last one outermost
        retry: Retry policy settings. Default: DEFAULT_RETRY_CONFIG
        transport: Base transport settings. Default: default_transport_config()
        base_transport: Ready-made innermost transport (tests, custom stacks)
        follow_redirects: Whether to follow redirects. Default: True

    Returns:
        A new AsyncImprovedClient

    Raises:
        ConfigurationError: The options do not form a valid configuration

    Example:
        client = create_client(
            rate_limit_requests_per_second=10,
            wire_logger=logging.getLogger("wire"),
        )
        response = await client.request("GET", "https://api.example.com/data")
    """
    config_kwargs = {}
    if clock is not None:
        config_kwargs["clock"] = clock

    config = ClientConfig(
        rate_limit_requests_per_second=rate_limit_requests_per_second,
        wire_logging_enabled=wire_logger is not None,
        logger=wire_logger,
        transport_wrappers=tuple(transport_wrappers),
        retry=retry,
        transport=transport or default_transport_config(),
        base_transport=base_transport,
        follow_redirects=follow_redirects,
        **config_kwargs,
    )
    return AsyncImprovedClient(config)
