"""
Outbound HTTP client with rate limiting, retries and wire logging.

Wraps httpx: every request waits on a token bucket, failed attempts are
retried with backoff, and an optional chain of transport wrappers (wire
logging among them) sits in front of the network transport.
"""
from .types import TransportWrapper, SyncTransportWrapper
from .errors import (
    ImprovedClientError,
    ConfigurationError,
    RequestCancelledError,
    BodyReadError,
)
from .clock import Clock, RealClock, MockClock
from .rate_limiter import RateLimiter, DEFAULT_SLACK
from .retry import (
    RetryConfig,
    RetryOptions,
    RetryResult,
    RetryEvent,
    BackoffStrategy,
    RetryExecutor,
    DEFAULT_RETRY_CONFIG,
)
from .config import (
    BaseTransportConfig,
    ClientConfig,
    default_transport_config,
    create_base_transport,
    resolve_proxy_from_env,
    resolve_proxy_mounts_from_env,
)
from .routing import ProxyRoutingTransport
from .transport import (
    LoggingTransport,
    SyncLoggingTransport,
    MAX_LOGGED_BODY_BYTES,
    TRUNCATION_MARKER,
)
from .compose import (
    compose_transport,
    compose_sync_transport,
    build_transport_chain,
    create_header_wrapper,
)
from .client import AsyncImprovedClient
from .factory import create_client

__all__ = [
    # Types
    "TransportWrapper",
    "SyncTransportWrapper",
    # Errors
    "ImprovedClientError",
    "ConfigurationError",
    "RequestCancelledError",
    "BodyReadError",
    # Clock
    "Clock",
    "RealClock",
    "MockClock",
    # Rate limiting
    "RateLimiter",
    "DEFAULT_SLACK",
    # Retry
    "RetryConfig",
    "RetryOptions",
    "RetryResult",
    "RetryEvent",
    "BackoffStrategy",
    "RetryExecutor",
    "DEFAULT_RETRY_CONFIG",
    # Config
    "BaseTransportConfig",
    "ClientConfig",
    "default_transport_config",
    "create_base_transport",
    "resolve_proxy_from_env",
    "resolve_proxy_mounts_from_env",
    "ProxyRoutingTransport",
    # Transports
    "LoggingTransport",
    "SyncLoggingTransport",
    "MAX_LOGGED_BODY_BYTES",
    "TRUNCATION_MARKER",
    "compose_transport",
    "compose_sync_transport",
    "build_transport_chain",
    "create_header_wrapper",
    # Client
    "AsyncImprovedClient",
    "create_client",
]

__version__ = "0.1.0"
