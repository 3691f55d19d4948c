"""
Tests for AsyncImprovedClient.

Test coverage includes:
- Success, error statuses and transport failures
- Retry exhaustion and recovery
- Admission rate and per-client isolation
- Cancellation while waiting for admission, backoff or the network
- No cookie persistence between calls
- Transport chain order and wire logging through the client
- Request defaults, redirects and lifecycle
"""
import asyncio
import logging
import time
from unittest.mock import patch

import httpx
import pytest
import respx

from fetch_improved_client import (
    AsyncImprovedClient,
    BaseTransportConfig,
    ClientConfig,
    RequestCancelledError,
    RetryConfig,
    RetryExecutor,
    create_client,
    create_header_wrapper,
)
from fetch_improved_client.transport import LoggingTransport

from support import FailingStream, RecordingTransport, recording_wrapper, wire_records


URL = "https://api.example.com/items"


class Handler:
    """MockTransport handler that plays back a script of results."""

    def __init__(self, *results):
        self.results = list(results) or [lambda request: httpx.Response(200, text="ok")]
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self.results)) - 1
        result = self.results[index]
        if callable(result):
            result = result(request)
        if isinstance(result, Exception):
            raise result
        return result

    @property
    def calls(self) -> int:
        return len(self.requests)


def make_client(handler, **kwargs) -> AsyncImprovedClient:
    kwargs.setdefault("rate_limit_requests_per_second", 1000)
    return create_client(base_transport=httpx.MockTransport(handler), **kwargs)


class TestSend:
    """Tests for send() outcomes."""

    @pytest.mark.asyncio
    async def test_returns_successful_response(self, fast_retry):
        handler = Handler(httpx.Response(200, json={"items": []}))

        async with make_client(handler, retry=fast_retry) as client:
            response = await client.send(client.build_request("GET", URL))

        assert response.status_code == 200
        assert response.json() == {"items": []}
        assert handler.calls == 1

    @pytest.mark.asyncio
    async def test_error_status_is_returned_without_retry(self, fast_retry):
        handler = Handler(httpx.Response(500, text="boom"))

        async with make_client(handler, retry=fast_retry) as client:
            response = await client.request("GET", URL)

        assert response.status_code == 500
        assert response.text == "boom"
        assert handler.calls == 1

    @pytest.mark.asyncio
    async def test_all_attempts_fail_raises_last_error(self, fast_retry):
        errors = []

        def fail(request):
            error = httpx.ConnectError(f"refused #{len(errors) + 1}", request=request)
            errors.append(error)
            return error

        handler = Handler(fail)

        async with make_client(handler, retry=fast_retry) as client:
            with pytest.raises(httpx.ConnectError) as excinfo:
                await client.request("GET", URL)

        assert handler.calls == fast_retry.max_attempts
        assert excinfo.value is errors[-1]
        assert str(excinfo.value) == f"refused #{fast_retry.max_attempts}"

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self, fast_retry):
        handler = Handler(
            httpx.ConnectError("refused"),
            httpx.ReadTimeout("slow"),
            httpx.Response(200, text="recovered"),
        )

        async with make_client(handler, retry=fast_retry) as client:
            response = await client.request("GET", URL)

        assert response.text == "recovered"
        assert handler.calls == 3

    @pytest.mark.asyncio
    async def test_request_body_is_resent_on_retry(self, fast_retry):
        handler = Handler(httpx.ConnectError("refused"), httpx.Response(201))

        async with make_client(handler, retry=fast_retry) as client:
            response = await client.request("POST", URL, content=b"payload")

        assert response.status_code == 201
        assert [request.content for request in handler.requests] == [b"payload", b"payload"]

    @pytest.mark.asyncio
    async def test_response_body_failure_is_retried(self, fast_retry):
        handler = Handler(
            lambda request: httpx.Response(200, stream=FailingStream()),
            httpx.Response(200, text="complete"),
        )

        async with make_client(handler, retry=fast_retry) as client:
            response = await client.request("GET", URL)

        assert response.text == "complete"
        assert handler.calls == 2

    @pytest.mark.asyncio
    async def test_retry_waits_are_logged(self, fast_retry, caplog):
        caplog.set_level(logging.DEBUG, logger="fetch_improved_client.client")
        handler = Handler(httpx.ConnectError("refused"), httpx.Response(200))

        async with make_client(handler, retry=fast_retry) as client:
            await client.request("GET", URL)

        messages = [
            record.getMessage()
            for record in caplog.records
            if record.name == "fetch_improved_client.client"
        ]
        assert any("retrying in" in message and URL in message for message in messages)

    @pytest.mark.asyncio
    async def test_each_call_gets_fresh_retry_executor(self, fast_retry):
        handler = Handler()

        with patch("fetch_improved_client.client.RetryExecutor", wraps=RetryExecutor) as spy:
            async with make_client(handler, retry=fast_retry) as client:
                await client.request("GET", URL)
                await client.request("GET", URL)

        assert spy.call_count == 2

    @pytest.mark.asyncio
    async def test_response_cookies_are_not_sent_on_later_calls(self, fast_retry):
        handler = Handler(httpx.Response(200, headers={"Set-Cookie": "session=abc; Path=/"}))

        async with make_client(handler, retry=fast_retry) as client:
            first = await client.request("GET", URL)
            await client.request("GET", URL)

        assert first.headers["set-cookie"] == "session=abc; Path=/"
        assert handler.calls == 2
        assert "cookie" not in handler.requests[1].headers


class TestRateLimiting:
    """Tests for admission control through the client."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rate", [1, 2, 10])
    async def test_requests_are_spaced_by_rate(self, mock_clock, rate):
        handler = Handler()
        count = 5

        async with make_client(handler, rate_limit_requests_per_second=rate, clock=mock_clock) as client:
            start = mock_clock.now()
            for _ in range(count):
                await client.request("GET", URL)

        assert handler.calls == count
        assert mock_clock.now() - start == pytest.approx((count - 1) / rate)

    @pytest.mark.asyncio
    async def test_retries_also_wait_for_admission(self, mock_clock, fast_retry):
        handler = Handler(httpx.ConnectError("refused"), httpx.Response(200))

        async with make_client(
            handler, rate_limit_requests_per_second=1, clock=mock_clock, retry=fast_retry
        ) as client:
            start = mock_clock.now()
            await client.request("GET", URL)

        assert mock_clock.now() - start == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_clients_do_not_share_limiter(self, mock_clock):
        first_handler, second_handler = Handler(), Handler()
        first = make_client(first_handler, rate_limit_requests_per_second=1, clock=mock_clock)
        second = make_client(second_handler, rate_limit_requests_per_second=1, clock=mock_clock)

        async with first, second:
            start = mock_clock.now()
            await first.request("GET", URL)
            await second.request("GET", URL)
            assert mock_clock.now() == start
            assert first.rate_limiter is not second.rate_limiter

    @pytest.mark.asyncio
    async def test_concurrent_requests_are_spaced(self, mock_clock):
        handler = Handler()

        async with make_client(handler, rate_limit_requests_per_second=4, clock=mock_clock) as client:
            start = mock_clock.now()
            await asyncio.gather(*(client.request("GET", URL) for _ in range(9)))

        assert handler.calls == 9
        assert mock_clock.now() - start == pytest.approx(2.0)


class TestCancellation:
    """Tests for caller-driven cancellation."""

    @pytest.mark.asyncio
    async def test_timeout_during_admission_wait(self):
        handler = Handler()

        async with make_client(handler, rate_limit_requests_per_second=1) as client:
            await client.request("GET", URL)
            started = time.monotonic()

            with pytest.raises(RequestCancelledError) as excinfo:
                await client.request("GET", URL, timeout=0.1)

        assert time.monotonic() - started < 0.5
        assert excinfo.value.timeout == 0.1
        assert isinstance(excinfo.value.__cause__, asyncio.TimeoutError)
        assert handler.calls == 1

    @pytest.mark.asyncio
    async def test_task_cancel_during_backoff(self):
        handler = Handler(httpx.ConnectError("refused"))
        retry = RetryConfig(max_retries=5, base_delay_seconds=10.0, jitter_factor=0)

        async with make_client(handler, retry=retry) as client:
            task = asyncio.create_task(client.request("GET", URL))
            await asyncio.sleep(0.05)
            task.cancel()

            with pytest.raises(asyncio.CancelledError):
                await task

        assert handler.calls == 1

    @pytest.mark.asyncio
    async def test_timeout_that_does_not_expire(self):
        handler = Handler()

        async with make_client(handler) as client:
            response = await client.request("GET", URL, timeout=5.0)

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_overall_request_timeout_is_transport_error(self):
        async def slow(request):
            await asyncio.sleep(1.0)
            return httpx.Response(200)

        client = make_client(
            slow,
            transport=BaseTransportConfig(request_timeout_seconds=0.05),
            retry=RetryConfig(max_retries=0),
        )

        async with client:
            with pytest.raises(httpx.TimeoutException) as excinfo:
                await client.request("GET", URL)

        assert isinstance(excinfo.value, httpx.TransportError)
        assert "overall timeout" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_timeout_during_network_io_is_not_retried(self, fast_retry):
        async def slow(request):
            await asyncio.sleep(1.0)
            return httpx.Response(200)

        handler = Handler(slow)

        async with make_client(handler, retry=fast_retry) as client:
            started = time.monotonic()

            with pytest.raises(RequestCancelledError) as excinfo:
                await client.request("GET", URL, timeout=0.05)

        assert time.monotonic() - started < 0.5
        assert excinfo.value.timeout == 0.05
        assert handler.calls == 1


class TestTransportChain:
    """Tests for the transport chain built by the client."""

    @pytest.mark.asyncio
    async def test_wrapper_order_and_logging_position(self, wire_logger):
        journal = []
        handler = Handler()
        base = httpx.MockTransport(handler)
        client = create_client(
            rate_limit_requests_per_second=1000,
            wire_logger=wire_logger,
            transport_wrappers=[recording_wrapper("inner", journal), recording_wrapper("outer", journal)],
            base_transport=base,
        )

        async with client:
            await client.request("GET", URL)

        assert journal == ["outer:request", "inner:request", "inner:response", "outer:response"]
        outer = client.transport
        assert isinstance(outer, RecordingTransport) and outer.name == "outer"
        assert outer.inner.name == "inner"
        assert isinstance(outer.inner.inner, LoggingTransport)
        assert outer.inner.inner._inner is base

    @pytest.mark.asyncio
    async def test_wire_logging_through_client(self, wire_logger, caplog, fast_retry):
        handler = Handler(httpx.ConnectError("refused"), httpx.Response(200, text="done"))

        async with make_client(handler, wire_logger=wire_logger, retry=fast_retry) as client:
            response = await client.request("POST", URL, content=b"hello")

        assert response.text == "done"
        assert [record.body for record in wire_records(caplog, "Sending request")] == ["hello", "hello"]
        [error] = wire_records(caplog, "Received error")
        assert error.error_type == "ConnectError"
        [received] = wire_records(caplog, "Received response")
        assert received.status == "200 OK"
        assert received.body == "done"

    @pytest.mark.asyncio
    async def test_no_wire_records_when_disabled(self, caplog):
        caplog.set_level(logging.DEBUG)

        async with make_client(Handler()) as client:
            await client.request("POST", URL, content=b"quiet")

        assert wire_records(caplog, "Sending request") == []
        assert client.config.wire_logging_enabled is False

    @pytest.mark.asyncio
    async def test_header_wrapper_reaches_server(self):
        handler = Handler()

        async with make_client(
            handler, transport_wrappers=[create_header_wrapper({"traceparent": "00-trace-span-01"})]
        ) as client:
            await client.request("GET", URL)

        assert handler.requests[0].headers["traceparent"] == "00-trace-span-01"


class TestRequestDefaults:
    """Tests for request preparation, redirects and lifecycle."""

    @pytest.mark.asyncio
    async def test_hand_built_request_gets_defaults(self):
        handler = Handler()

        async with make_client(handler) as client:
            await client.send(httpx.Request("GET", URL))

        [request] = handler.requests
        assert request.extensions["timeout"] == {"connect": 10.0, "read": 10.0, "write": 10.0, "pool": 10.0}
        assert "gzip" in request.headers["accept-encoding"]

    @pytest.mark.asyncio
    async def test_compression_disabled(self):
        handler = Handler()

        async with make_client(handler, transport=BaseTransportConfig(compression_enabled=False)) as client:
            await client.request("GET", URL)

        assert handler.requests[0].headers["accept-encoding"] == "identity"

    @pytest.mark.asyncio
    async def test_follows_redirects_by_default(self):
        def route(request):
            if request.url.path == "/old":
                return httpx.Response(302, headers={"Location": "https://api.example.com/new"})
            return httpx.Response(200, text="moved here")

        async with make_client(route) as client:
            response = await client.request("GET", "https://api.example.com/old")

        assert response.text == "moved here"
        assert response.url.path == "/new"

    @pytest.mark.asyncio
    async def test_redirects_can_be_disabled(self):
        def route(request):
            return httpx.Response(302, headers={"Location": "https://api.example.com/new"})

        async with make_client(route, follow_redirects=False) as client:
            response = await client.request("GET", "https://api.example.com/old")

        assert response.status_code == 302

    @pytest.mark.asyncio
    async def test_closed_client_rejects_requests(self):
        client = make_client(Handler())
        async with client:
            pass

        assert client.is_closed is True
        with pytest.raises(RuntimeError, match="closed"):
            await client.request("GET", URL)

    @pytest.mark.asyncio
    async def test_default_config(self, no_proxy_env):
        client = AsyncImprovedClient()
        async with client:
            assert client.config == ClientConfig(clock=client.config.clock)
            assert client.rate_limiter.rate == 1
            assert isinstance(client.transport, httpx.AsyncHTTPTransport)

    @pytest.mark.asyncio
    async def test_real_base_transport_with_respx(self, no_proxy_env, wire_logger, caplog):
        with respx.mock(assert_all_called=True) as router:
            router.get(URL).mock(return_value=httpx.Response(200, text="from the network layer"))

            async with create_client(rate_limit_requests_per_second=100, wire_logger=wire_logger) as client:
                response = await client.request("GET", URL)

        assert response.text == "from the network layer"
        [received] = wire_records(caplog, "Received response")
        assert received.body == "from the network layer"
