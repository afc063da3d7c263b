"""Tests for RetryExecutor error classification and backoff."""

import asyncio
import socket

import httpx
import pytest

from placebot.core.exceptions import ExhaustedError, FatalUpstreamError
from placebot.core.retry import (
    ErrorKind,
    RetryExecutor,
    RetryPolicy,
    classify_error,
)


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://example.org/api")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


class FakeSleep:
    """Records requested delays instead of sleeping."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class Flaky:
    """Raises the queued errors in order, then returns `value`."""

    def __init__(self, errors, value="ok"):
        self.errors = list(errors)
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.value


@pytest.fixture
def sleep():
    return FakeSleep()


@pytest.fixture
def executor(sleep):
    return RetryExecutor(RetryPolicy(max_attempts=3, base_delay=2.0), sleep=sleep)


class TestClassifyError:
    def test_rate_limit_is_retryable(self):
        assert classify_error(_status_error(429)) is ErrorKind.RATE_LIMIT

    @pytest.mark.parametrize("status", [400, 403, 404, 500, 503])
    def test_other_statuses_are_fatal(self, status):
        assert classify_error(_status_error(status)) is ErrorKind.FATAL

    def test_transport_failures_are_network(self):
        request = httpx.Request("GET", "https://example.org")
        assert classify_error(httpx.ConnectError("refused", request=request)) is ErrorKind.NETWORK
        assert classify_error(ConnectionResetError()) is ErrorKind.NETWORK
        assert classify_error(socket.gaierror("name resolution")) is ErrorKind.NETWORK

    def test_timeouts(self):
        request = httpx.Request("GET", "https://example.org")
        assert classify_error(httpx.ReadTimeout("slow", request=request)) is ErrorKind.TIMEOUT
        assert classify_error(asyncio.TimeoutError()) is ErrorKind.TIMEOUT

    def test_malformed_payload_is_fatal(self):
        error = FatalUpstreamError.from_malformed_payload("wikipedia", ValueError("bad json"))
        assert classify_error(error) is ErrorKind.FATAL
        assert classify_error(ValueError("validation")) is ErrorKind.FATAL


class TestBackoff:
    def test_exponential_with_caps(self):
        policy = RetryPolicy(base_delay=2.0, network_cap=30.0, rate_limit_base_delay=5.0, rate_limit_cap=60.0)

        assert [policy.backoff(n, ErrorKind.NETWORK) for n in (1, 2, 3, 5)] == [2.0, 4.0, 8.0, 30.0]
        assert policy.backoff(1, ErrorKind.RATE_LIMIT) == 5.0
        assert policy.backoff(5, ErrorKind.RATE_LIMIT) == 60.0


class TestRetryExecutor:
    def test_success_after_two_retryable_failures(self, executor, sleep):
        """Two retryable failures then success: value returned, exactly two sleeps."""
        op = Flaky([ConnectionResetError(), _status_error(429)], value={"title": "Lac d'Annecy"})

        result = asyncio.run(executor.execute(op, "wikipedia.search"))

        assert result == {"title": "Lac d'Annecy"}
        assert op.calls == 3
        assert sleep.delays == [2.0, 10.0]

    def test_fatal_error_stops_immediately(self, executor, sleep):
        op = Flaky([_status_error(404)] * 3)

        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(executor.execute(op, "google_places.photos"))

        assert op.calls == 1
        assert sleep.delays == []

    def test_exhausted_wraps_last_error(self, executor, sleep):
        last = ConnectionRefusedError("refused")
        op = Flaky([ConnectionResetError(), ConnectionResetError(), last])

        with pytest.raises(ExhaustedError) as exc_info:
            asyncio.run(executor.execute(op, "nominatim.search"))

        assert exc_info.value.label == "nominatim.search"
        assert exc_info.value.last_error is last
        assert exc_info.value.attempts == 3
        assert "nominatim.search" in str(exc_info.value)
        # No sleep after the final attempt
        assert len(sleep.delays) == 2

    def test_call_timeout_is_retryable(self, sleep):
        executor = RetryExecutor(
            RetryPolicy(max_attempts=2, base_delay=1.0, call_timeout=0.01), sleep=sleep
        )
        calls = []

        async def slow_then_fast():
            calls.append(1)
            if len(calls) == 1:
                await asyncio.sleep(1)
            return "done"

        assert asyncio.run(executor.execute(slow_then_fast, "slow")) == "done"
        assert sleep.delays == [1.0]
