"""
Rate-limited, retrying HTTP client built on httpx.
"""
import asyncio
import http.cookiejar
import logging
from typing import Any, Optional

import httpx

from .compose import build_transport_chain
from .config import ClientConfig, build_timeout, create_base_transport
from .errors import RequestCancelledError
from .rate_limiter import RateLimiter
from .retry import RetryEvent, RetryExecutor, RetryOptions

logger = logging.getLogger("fetch_improved_client.client")


def _reject_all_cookies() -> http.cookiejar.CookieJar:
    return http.cookiejar.CookieJar(policy=http.cookiejar.DefaultCookiePolicy(allowed_domains=[]))


class AsyncImprovedClient:
    """
    Asynchronous HTTP client with admission control, retries and wire logging.

    One client owns one rate limiter and one transport chain, both created in
    the constructor and shared by every call. send() never keeps state between
    calls: each call builds its own retry executor, and cookies set by a
    response are dropped rather than sent with later requests.

    Example:
        async with AsyncImprovedClient(ClientConfig(rate_limit_requests_per_second=5)) as client:
            response = await client.send(client.build_request("GET", "https://api.example.com/items"))
    """

    def __init__(self, config: Optional[ClientConfig] = None) -> None:
        self._config = config or ClientConfig()
        self._timeout = build_timeout(self._config.transport)

        base = self._config.base_transport or create_base_transport(self._config.transport)
        self._transport = build_transport_chain(
            base,
            wire_logging_enabled=self._config.wire_logging_enabled,
            logger=self._config.logger,
            wrappers=self._config.transport_wrappers,
        )
        self._rate_limiter = RateLimiter(
            self._config.rate_limit_requests_per_second,
            clock=self._config.clock,
        )

        headers = None if self._config.transport.compression_enabled else {"Accept-Encoding": "identity"}
        self._client = httpx.AsyncClient(
            transport=self._transport,
            timeout=self._timeout,
            headers=headers,
            follow_redirects=self._config.follow_redirects,
            cookies=_reject_all_cookies(),
            trust_env=False,
        )
        self._closed = False

    def build_request(self, method: str, url: Any, **kwargs: Any) -> httpx.Request:
        """Build a request carrying the client's default headers and timeouts."""
        return self._client.build_request(method, url, **kwargs)

    async def send(self, request: httpx.Request, *, timeout: Optional[float] = None) -> httpx.Response:
        """
        Send a request through the rate limiter, retry policy and transport chain.

        Every attempt waits for admission, then goes through the chain. The
        same request object is reused on each attempt, so its body must be
        replayable (bytes content always is). A response is returned whatever
        its status code; only exceptions are retried. When all attempts fail
        the last attempt's exception is raised.

        Args:
            request: The request to send
            timeout: Bound in seconds on the whole call, covering admission
                waits, backoff waits and network I/O. Default: no bound

        Returns:
            The response of the first successful attempt

        Raises:
            RequestCancelledError: timeout elapsed before the call finished
            httpx.TransportError: the last attempt's transport failure
        """
        if self._closed:
            raise RuntimeError("Client has been closed")

        self._prepare_request(request)

        if timeout is None:
            return await self._send_with_retry(request)

        try:
            return await asyncio.wait_for(self._send_with_retry(request), timeout)
        except asyncio.TimeoutError as e:
            raise RequestCancelledError(
                f"{request.method} {request.url} cancelled after {timeout}s",
                timeout=timeout,
            ) from e

    async def request(
        self,
        method: str,
        url: Any,
        *,
        timeout: Optional[float] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Build and send a request. kwargs go to build_request()."""
        return await self.send(self.build_request(method, url, **kwargs), timeout=timeout)

    def _prepare_request(self, request: httpx.Request) -> None:
        """Fill in the defaults a hand-built request may be missing."""
        if "timeout" not in request.extensions:
            request.extensions["timeout"] = self._timeout.as_dict()
        if "accept-encoding" not in request.headers:
            request.headers["Accept-Encoding"] = self._client.headers["accept-encoding"]

    async def _send_with_retry(self, request: httpx.Request) -> httpx.Response:
        executor = RetryExecutor(self._config.retry)
        executor.on(self._log_retry_event)

        async def attempt() -> httpx.Response:
            await self._rate_limiter.take_async()
            return await self._dispatch(request)

        result = await executor.execute(
            attempt,
            RetryOptions(metadata={"method": request.method, "url": str(request.url)}),
        )
        return result.result

    async def _dispatch(self, request: httpx.Request) -> httpx.Response:
        """One trip through the chain, bounded by the overall request timeout."""
        budget = self._config.transport.request_timeout_seconds
        try:
            return await asyncio.wait_for(self._client.send(request), budget)
        except asyncio.TimeoutError as e:
            raise httpx.TimeoutException(
                f"request exceeded overall timeout of {budget}s",
                request=request,
            ) from e

    def _log_retry_event(self, event: RetryEvent) -> None:
        metadata = event.data.get("metadata") or {}
        target = f"{metadata.get('method')} {metadata.get('url')}"
        if event.type == "retry:wait":
            logger.debug(
                f"AsyncImprovedClient.send: {target} attempt {event.attempt + 1} failed "
                f"({event.data.get('error')}), retrying in {event.data['delay_seconds']:.3f}s"
            )
        elif event.type == "retry:abort":
            logger.debug(f"AsyncImprovedClient.send: {target} giving up, {event.data.get('reason')} reached")

    @property
    def config(self) -> ClientConfig:
        """Configuration this client was built from."""
        return self._config

    @property
    def transport(self) -> httpx.AsyncBaseTransport:
        """Outermost layer of the transport chain."""
        return self._transport

    @property
    def rate_limiter(self) -> RateLimiter:
        """The client's admission gate."""
        return self._rate_limiter

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def aclose(self) -> None:
        """Close the client and its transport chain."""
        self._closed = True
        await self._client.aclose()

    async def __aenter__(self) -> "AsyncImprovedClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.aclose()
