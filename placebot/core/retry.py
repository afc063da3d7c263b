"""Bounded retries with exponential backoff for outbound calls.

Every network call made by the enrichment pipeline goes through
`RetryExecutor.execute`. Errors are classified before anything else happens:

- Retryable: DNS resolution failures, refused or reset connections,
  timeouts, other transport failures and HTTP 429.
- Fatal: every other HTTP status, malformed payloads, validation errors and
  anything unrecognised. These propagate on the first occurrence.

Usage:
------
executor = RetryExecutor(RetryPolicy(max_attempts=3))
data = await executor.execute(lambda: client.search("Lac d'Annecy"), "nominatim.search")
"""

import asyncio
import socket
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, Field

from placebot.core.exceptions import ExhaustedError
from placebot.utils.logger import LoggerManager

T = TypeVar("T")


class ErrorKind(str, Enum):
    """How a failed attempt was classified."""
    NETWORK = "network"         # DNS, refused/reset connection, transport failure
    TIMEOUT = "timeout"         # Per-call timeout or client timeout
    RATE_LIMIT = "rate_limit"   # HTTP 429
    FATAL = "fatal"             # Anything that retrying will not fix


@dataclass(frozen=True)
class RetryAttempt:
    """One failed attempt inside a single `execute` call."""
    attempt: int
    delay: float
    error_kind: ErrorKind


class RetryPolicy(BaseModel):
    """Attempt budget and backoff parameters."""
    model_config = ConfigDict(extra="forbid")

    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=2.0, ge=0)
    network_cap: float = Field(default=30.0, ge=0)
    rate_limit_base_delay: float = Field(default=5.0, ge=0)
    rate_limit_cap: float = Field(default=60.0, ge=0)
    call_timeout: Optional[float] = Field(default=None, gt=0)

    def backoff(self, attempt: int, kind: ErrorKind) -> float:
        """Delay before the attempt following `attempt` (1-based)."""
        if kind is ErrorKind.RATE_LIMIT:
            return min(self.rate_limit_base_delay * 2 ** (attempt - 1), self.rate_limit_cap)
        return min(self.base_delay * 2 ** (attempt - 1), self.network_cap)


def classify_error(error: BaseException) -> ErrorKind:
    """Map an exception raised by an outbound call to an ErrorKind."""
    if isinstance(error, httpx.HTTPStatusError):
        if error.response.status_code == 429:
            return ErrorKind.RATE_LIMIT
        return ErrorKind.FATAL
    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(error, (httpx.NetworkError, httpx.RemoteProtocolError)):
        return ErrorKind.NETWORK
    if isinstance(error, (ConnectionError, socket.gaierror)):
        return ErrorKind.NETWORK
    return ErrorKind.FATAL


class RetryExecutor:
    """Runs a zero-argument coroutine factory with bounded retries.

    Attributes:
        policy: Attempt budget and backoff parameters
        sleep: Awaitable used for backoff, replaceable in tests
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.policy = policy or RetryPolicy()
        self.sleep = sleep
        self.logger = LoggerManager.get_logger(__name__)

    async def execute(self, operation: Callable[[], Awaitable[T]], label: str) -> T:
        """Invoke `operation` until it succeeds, fails fatally or runs out of attempts.

        Args:
            operation: Zero-argument callable returning a fresh awaitable per call
            label: Name used in log records and in ExhaustedError

        Returns:
            Whatever the successful attempt returned

        Raises:
            ExhaustedError: Every attempt failed with a retryable error
            Exception: The first fatal error, unchanged
        """
        history: List[RetryAttempt] = []
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.policy.max_attempts + 1):
            try:
                if self.policy.call_timeout is not None:
                    return await asyncio.wait_for(operation(), self.policy.call_timeout)
                return await operation()
            except Exception as e:
                kind = classify_error(e)
                if kind is ErrorKind.FATAL:
                    self.logger.warning(
                        "retry.fatal",
                        extra={"extra_data": {
                            "label": label,
                            "attempt": attempt,
                            "error": f"{type(e).__name__}: {e}",
                        }},
                    )
                    raise

                last_error = e
                if attempt == self.policy.max_attempts:
                    history.append(RetryAttempt(attempt, 0.0, kind))
                    break

                delay = self.policy.backoff(attempt, kind)
                history.append(RetryAttempt(attempt, delay, kind))
                self.logger.warning(
                    "retry.backoff",
                    extra={"extra_data": {
                        "label": label,
                        "attempt": attempt,
                        "max_attempts": self.policy.max_attempts,
                        "error_kind": kind.value,
                        "delay_seconds": delay,
                        "error": str(e),
                    }},
                )
                await self.sleep(delay)

        self.logger.error(
            "retry.exhausted",
            extra={"extra_data": {
                "label": label,
                "attempts": [(a.attempt, a.error_kind.value, a.delay) for a in history],
                "error": str(last_error),
            }},
        )
        raise ExhaustedError(label, last_error, self.policy.max_attempts) from last_error
