"""
Test doubles shared across the test modules.
"""
import logging
from typing import Optional

import httpx


WIRE_LOGGER_NAME = "tests.wire"


class StubTransport(httpx.AsyncBaseTransport):
    """Inner transport that records requests and returns a canned result."""

    def __init__(
        self,
        response: Optional[httpx.Response] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.response = response or httpx.Response(200)
        self.error = error
        self.requests: list[httpx.Request] = []
        self.bodies: list[bytes] = []
        self.closed = False

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.bodies.append(b"".join([chunk async for chunk in request.stream]))
        if self.error is not None:
            raise self.error
        return self.response

    async def aclose(self) -> None:
        self.closed = True


class FailingStream(httpx.AsyncByteStream):
    """Response stream that breaks after the first chunk."""

    def __init__(self) -> None:
        self.closed = False

    async def __aiter__(self):
        yield b"partial"
        raise httpx.ReadError("connection reset by peer")

    async def aclose(self) -> None:
        self.closed = True


class RecordingTransport(httpx.AsyncBaseTransport):
    """Wrapper that notes when it sees a request and its response."""

    def __init__(self, inner: httpx.AsyncBaseTransport, name: str, journal: list[str]) -> None:
        self.inner = inner
        self.name = name
        self.journal = journal

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.journal.append(f"{self.name}:request")
        response = await self.inner.handle_async_request(request)
        self.journal.append(f"{self.name}:response")
        return response

    async def aclose(self) -> None:
        await self.inner.aclose()


def recording_wrapper(name: str, journal: list[str]):
    """Transport wrapper factory for RecordingTransport."""
    return lambda inner: RecordingTransport(inner, name, journal)


def wire_records(caplog, message: str) -> list[logging.LogRecord]:
    """Wire log records with the given message."""
    return [
        record
        for record in caplog.records
        if record.name == WIRE_LOGGER_NAME and record.getMessage() == message
    ]
