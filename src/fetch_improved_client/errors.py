"""
Exception types for fetch_improved_client
"""
from typing import Literal, Optional

import httpx


BodySide = Literal["request", "response"]


class ImprovedClientError(Exception):
    """Base class for errors raised by the client itself."""


class ConfigurationError(ImprovedClientError, ValueError):
    """Raised when a ClientConfig holds an invalid combination of options."""


class RequestCancelledError(ImprovedClientError):
    """Raised when the caller's deadline expires before the call completes."""

    def __init__(self, message: str, timeout: Optional[float] = None) -> None:
        super().__init__(message)
        self.timeout = timeout


class BodyReadError(httpx.TransportError):
    """
    Raised by the logging transport when a body cannot be captured.

    Subclasses httpx.TransportError so it is handled exactly like any other
    transport failure. The original exception is chained as __cause__.
    """

    def __init__(
        self,
        side: BodySide,
        *,
        request: Optional[httpx.Request] = None,
    ) -> None:
        super().__init__(f"failed to read {side} body", request=request)
        self.side = side
