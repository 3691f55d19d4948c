"""
Transport chain composition.
"""
import functools
import logging
from typing import Mapping, Optional, Sequence

import httpx

from .transport import LoggingTransport
from .types import SyncTransportWrapper, TransportWrapper


def compose_transport(
    base: httpx.AsyncBaseTransport,
    *wrappers: TransportWrapper,
) -> httpx.AsyncBaseTransport:
    """
    Fold wrappers over a base transport.

    Each wrapper receives the result of the previous step, so the last
    wrapper is the outermost layer: first to see a request, last to see
    its response.

    Args:
        base: Innermost transport, usually the one doing network I/O
        *wrappers: Callables taking the inner transport and returning its wrapper

    Returns:
        The outermost transport

    Example:
        transport = compose_transport(
            httpx.AsyncHTTPTransport(),
            lambda inner: LoggingTransport(inner, logger),
            create_header_wrapper({"x-service": "billing"}),
        )
        client = httpx.AsyncClient(transport=transport)
    """
    transport = base
    for wrapper in wrappers:
        transport = wrapper(transport)
    return transport


def compose_sync_transport(
    base: httpx.BaseTransport,
    *wrappers: SyncTransportWrapper,
) -> httpx.BaseTransport:
    """Fold wrappers over a sync base transport; same ordering as compose_transport."""
    return functools.reduce(lambda inner, wrapper: wrapper(inner), wrappers, base)


def build_transport_chain(
    base: httpx.AsyncBaseTransport,
    *,
    wire_logging_enabled: bool = False,
    logger: Optional[logging.Logger] = None,
    wrappers: Sequence[TransportWrapper] = (),
) -> httpx.AsyncBaseTransport:
    """
    Assemble the client's transport chain in its fixed order.

    base (innermost) -> LoggingTransport (if enabled) -> wrappers[0] -> ... -> wrappers[-1]

    Args:
        base: Transport that performs the network I/O
        wire_logging_enabled: Whether to insert LoggingTransport
        logger: Sink for the wire records, required with wire logging
        wrappers: Transport wrappers in application order

    Returns:
        Outermost transport of the chain
    """
    layers: list[TransportWrapper] = []
    if wire_logging_enabled:
        if logger is None:
            raise ValueError("wire logging requires a logger")
        layers.append(lambda inner: LoggingTransport(inner, logger))
    layers.extend(wrappers)
    return compose_transport(base, *layers)


class HeaderTransport(httpx.AsyncBaseTransport):
    """Stamps fixed headers onto every request before delegating."""

    def __init__(self, inner: httpx.AsyncBaseTransport, headers: Mapping[str, str]) -> None:
        self._inner = inner
        self._headers = dict(headers)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        for name, value in self._headers.items():
            request.headers[name] = value
        return await self._inner.handle_async_request(request)

    async def aclose(self) -> None:
        await self._inner.aclose()


def create_header_wrapper(headers: Mapping[str, str]) -> TransportWrapper:
    """
    Create a wrapper that adds fixed headers to each outgoing request.

    Tracing propagators and service-identity headers plug in this way.

    Example:
        client = create_client(
            transport_wrappers=[create_header_wrapper({"x-client": "reports"})],
        )
    """

    def wrapper(inner: httpx.AsyncBaseTransport) -> HeaderTransport:
        return HeaderTransport(inner, headers)

    return wrapper
