"""
Configuration for fetch_improved_client.
"""
import logging
import os
import socket
from dataclasses import dataclass, field
from typing import Optional, Union
from urllib.request import getproxies

import httpx
from httpx._utils import get_environment_proxies

from .clock import Clock, RealClock
from .errors import ConfigurationError
from .retry import RetryConfig, validate_retry_config
from .routing import ProxyRoutingTransport, match_proxy_route
from .types import TransportWrapper

logger = logging.getLogger("fetch_improved_client.config")


@dataclass(frozen=True)
class BaseTransportConfig:
    """Settings for the innermost transport. All durations in seconds."""

    request_timeout_seconds: float = 10.0
    max_idle_connections: int = 100
    max_idle_connections_per_host: int = 100
    idle_connection_timeout_seconds: float = 300.0
    dial_timeout_seconds: float = 10.0
    keep_alive_interval_seconds: float = 3.0
    response_header_timeout_seconds: float = 10.0
    expect_continue_timeout_seconds: float = 1.0
    compression_enabled: bool = True
    proxy_from_environment: bool = True


def default_transport_config() -> BaseTransportConfig:
    """Return a fresh default transport config for one client."""
    return BaseTransportConfig()


def resolve_proxy_mounts_from_env() -> dict[str, Optional[str]]:
    """
    Proxy routing table from environment variables, keyed by httpx URL pattern.

    HTTPS_PROXY, HTTP_PROXY and ALL_PROXY (either case) select a proxy per
    scheme and each NO_PROXY entry maps to None, meaning a direct connection.
    This is the table httpx builds for trust_env=True.

    PROXY_URL, when set, takes over every scheme. NO_PROXY exclusions
    still apply to it, and NO_PROXY=* disables proxying altogether.

    Returns:
        Mapping of URL pattern to proxy URL or None. Empty when no proxy applies.
    """
    mounts = get_environment_proxies()
    override = os.environ.get("PROXY_URL")
    if override and not _no_proxy_for_all():
        mounts = {pattern: proxy for pattern, proxy in mounts.items() if proxy is None}
        mounts["all://"] = override
        logger.debug(f"resolve_proxy_mounts_from_env: Using PROXY_URL env: {override}")

    logger.debug(f"resolve_proxy_mounts_from_env: mounts={mounts}")
    return mounts


def _no_proxy_for_all() -> bool:
    no_proxy = getproxies().get("no", "")
    return any(host.strip() == "*" for host in no_proxy.split(","))


def resolve_proxy_from_env(url: Union[httpx.URL, str]) -> Optional[str]:
    """
    Proxy URL the environment selects for one request URL.

    Args:
        url: Target URL of the request

    Returns:
        Proxy URL string or None if the request should connect directly.
    """
    return match_proxy_route(resolve_proxy_mounts_from_env(), httpx.URL(url))


def build_timeout(config: BaseTransportConfig) -> httpx.Timeout:
    """Map transport settings onto an httpx.Timeout."""
    return httpx.Timeout(
        config.request_timeout_seconds,
        connect=config.dial_timeout_seconds,
        read=config.response_header_timeout_seconds,
    )


def build_limits(config: BaseTransportConfig) -> httpx.Limits:
    """Map idle connection settings onto httpx.Limits."""
    return httpx.Limits(
        max_connections=None,
        max_keepalive_connections=config.max_idle_connections,
        keepalive_expiry=config.idle_connection_timeout_seconds,
    )


def build_socket_options(config: BaseTransportConfig) -> list[tuple[int, int, int]]:
    """TCP keep-alive probe options, limited to what the platform exposes."""
    interval = max(1, int(config.keep_alive_interval_seconds))
    options = [(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)]
    if hasattr(socket, "TCP_KEEPIDLE"):
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, interval))
    if hasattr(socket, "TCP_KEEPINTVL"):
        options.append((socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, interval))
    return options


def create_base_transport(config: Optional[BaseTransportConfig] = None) -> httpx.AsyncBaseTransport:
    """
    Create the innermost transport that performs network I/O.

    Without environment proxies this is a plain httpx.AsyncHTTPTransport.
    Otherwise it is a ProxyRoutingTransport holding one pool for direct
    connections and one per distinct proxy URL, chosen per request.

    Args:
        config: Transport settings. Default: default_transport_config()

    Returns:
        A new transport owned by the caller
    """
    config = config or default_transport_config()
    mounts = resolve_proxy_mounts_from_env() if config.proxy_from_environment else {}

    def pool(proxy: Optional[str] = None) -> httpx.AsyncHTTPTransport:
        return httpx.AsyncHTTPTransport(
            limits=build_limits(config),
            proxy=proxy,
            socket_options=build_socket_options(config),
        )

    direct = pool()
    if not any(mounts.values()):
        return direct

    proxies = {url: pool(url) for url in set(mounts.values()) if url}
    return ProxyRoutingTransport(
        direct,
        {pattern: proxies[url] if url else None for pattern, url in mounts.items()},
    )


@dataclass(frozen=True)
class ClientConfig:
    """
    Client configuration.

    Properties:
    - rate_limit_requests_per_second: admission rate, positive int
    - clock: time source for the rate limiter
    - wire_logging_enabled: insert LoggingTransport next to the base transport
    - transport_wrappers: wrappers applied in order; the last one is outermost
    - logger: sink for wire logging, required when wire logging is enabled
    - retry: retry policy settings, None for the default policy
    - transport: settings for the base transport
    - base_transport: ready-made innermost transport, overrides `transport`
      for connection handling (timeouts still come from `transport`)
    - follow_redirects: follow 3xx responses like a browser would
    """

    rate_limit_requests_per_second: int = 1
    clock: Clock = field(default_factory=RealClock)
    wire_logging_enabled: bool = False
    transport_wrappers: tuple[TransportWrapper, ...] = ()
    logger: Optional[logging.Logger] = None
    retry: Optional[RetryConfig] = None
    transport: BaseTransportConfig = field(default_factory=default_transport_config)
    base_transport: Optional[httpx.AsyncBaseTransport] = None
    follow_redirects: bool = True

    def __post_init__(self) -> None:
        """Normalize and validate on construction."""
        object.__setattr__(self, "transport_wrappers", tuple(self.transport_wrappers))
        validate_config(self)


def validate_config(config: ClientConfig) -> None:
    """Validate client configuration."""
    rps = config.rate_limit_requests_per_second
    if isinstance(rps, bool) or not isinstance(rps, int) or rps <= 0:
        raise ConfigurationError(
            f"rate_limit_requests_per_second must be a positive integer, got {rps!r}"
        )

    if config.wire_logging_enabled and config.logger is None:
        raise ConfigurationError("wire logging requires a logger")

    for wrapper in config.transport_wrappers:
        if not callable(wrapper):
            raise ConfigurationError(f"transport wrapper is not callable: {wrapper!r}")

    if config.base_transport is not None and not isinstance(
        config.base_transport, httpx.AsyncBaseTransport
    ):
        raise ConfigurationError(
            f"base_transport must be an httpx.AsyncBaseTransport, got {type(config.base_transport).__name__}"
        )

    if config.retry is not None:
        try:
            validate_retry_config(config.retry)
        except ValueError as e:
            raise ConfigurationError(f"Invalid retry config: {e}") from e
