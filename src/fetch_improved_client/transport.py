"""
Wire logging transport wrapper for httpx
"""
import logging

import httpx

from .errors import BodyReadError


# Bodies are logged up to this many bytes; the wire payload is never cut.
MAX_LOGGED_BODY_BYTES = 1 << 20
TRUNCATION_MARKER = "...(truncated)"


def format_body_for_log(body: bytes) -> str:
    """Text form of a body for logging, cut at MAX_LOGGED_BODY_BYTES."""
    if len(body) > MAX_LOGGED_BODY_BYTES:
        return body[:MAX_LOGGED_BODY_BYTES].decode("utf-8", errors="replace") + TRUNCATION_MARKER
    return body.decode("utf-8", errors="replace")


def request_has_body(request: httpx.Request) -> bool:
    """Whether the request announces a payload."""
    length = request.headers.get("content-length")
    if length is not None:
        return length.strip() != "0"
    return "transfer-encoding" in request.headers


def response_has_body(request: httpx.Request, response: httpx.Response) -> bool:
    """Whether the response may carry a payload at all (RFC 9110 section 6.4.1)."""
    if request.method.upper() == "HEAD":
        return False
    status = response.status_code
    return not (100 <= status < 200 or status in (204, 304))


def format_status(response: httpx.Response) -> str:
    """Status line text, e.g. "200 OK"."""
    return f"{response.status_code} {response.reason_phrase}".rstrip()


def decode_for_log(response: httpx.Response, raw: bytes) -> bytes:
    """
    Undo Content-Encoding on a copy of the raw body so the log shows content.

    A body that does not decode is logged raw; the caller sees the decoding
    error when it reads the response.
    """
    if "content-encoding" not in response.headers:
        return raw
    try:
        return httpx.Response(response.status_code, headers=response.headers, content=raw).content
    except httpx.DecodingError:
        return raw


class LoggingTransport(httpx.AsyncBaseTransport):
    """
    Wire logging transport wrapper for httpx.

    Captures request and response bodies, logs them at debug level through
    the given logger and puts equivalent re-readable streams back in place,
    so the inner transport still sends the full request body and the caller
    still reads the full response body.

    Records:
    - "Sending request" (debug): method, url, body. Only for requests with a body.
    - "Received error" (error): error, error_type. The error is re-raised unchanged.
    - "Received response" (debug): status, body. Only for responses with a body.

    Example:
        base = httpx.AsyncHTTPTransport()
        transport = LoggingTransport(base, logging.getLogger("wire"))
        client = httpx.AsyncClient(transport=transport)
    """

    def __init__(self, inner: httpx.AsyncBaseTransport, logger: logging.Logger) -> None:
        """
        Create a new LoggingTransport.

        Args:
            inner: The wrapped transport to delegate requests to
            logger: Logger that receives the wire records
        """
        self._inner = inner
        self._logger = logger

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        """Handle an async HTTP request, logging both bodies"""

        if request_has_body(request):
            try:
                # aread() swaps a one-shot stream for a replayable ByteStream
                body = await request.aread()
            except Exception as e:
                raise BodyReadError("request", request=request) from e

            self._logger.debug(
                "Sending request",
                extra={
                    "method": request.method,
                    "url": str(request.url),
                    "body": format_body_for_log(body),
                },
            )

        try:
            response = await self._inner.handle_async_request(request)
        except Exception as error:
            self._logger.error(
                "Received error",
                extra={"error": str(error), "error_type": type(error).__name__},
            )
            raise

        if not response_has_body(request, response):
            return response

        try:
            raw = b"".join([chunk async for chunk in response.stream])
        except Exception as e:
            raise BodyReadError("response", request=request) from e
        finally:
            await response.stream.aclose()

        response.stream = httpx.ByteStream(raw)
        logged = decode_for_log(response, raw)

        self._logger.debug(
            "Received response",
            extra={
                "status": format_status(response),
                "body": format_body_for_log(logged),
            },
        )

        return response

    async def aclose(self) -> None:
        """Close the transport"""
        await self._inner.aclose()


class SyncLoggingTransport(httpx.BaseTransport):
    """
    Synchronous wire logging transport wrapper for httpx.

    Same records and body handling as LoggingTransport, for httpx.Client.
    """

    def __init__(self, inner: httpx.BaseTransport, logger: logging.Logger) -> None:
        """
        Create a new SyncLoggingTransport.

        Args:
            inner: The wrapped transport to delegate requests to
            logger: Logger that receives the wire records
        """
        self._inner = inner
        self._logger = logger

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        """Handle a sync HTTP request, logging both bodies"""

        if request_has_body(request):
            try:
                body = request.read()
            except Exception as e:
                raise BodyReadError("request", request=request) from e

            self._logger.debug(
                "Sending request",
                extra={
                    "method": request.method,
                    "url": str(request.url),
                    "body": format_body_for_log(body),
                },
            )

        try:
            response = self._inner.handle_request(request)
        except Exception as error:
            self._logger.error(
                "Received error",
                extra={"error": str(error), "error_type": type(error).__name__},
            )
            raise

        if not response_has_body(request, response):
            return response

        try:
            raw = b"".join(list(response.stream))
        except Exception as e:
            raise BodyReadError("response", request=request) from e
        finally:
            response.stream.close()

        response.stream = httpx.ByteStream(raw)
        logged = decode_for_log(response, raw)

        self._logger.debug(
            "Received response",
            extra={
                "status": format_status(response),
                "body": format_body_for_log(logged),
            },
        )

        return response

    def close(self) -> None:
        """Close the transport"""
        self._inner.close()
