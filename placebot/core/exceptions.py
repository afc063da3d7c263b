"""Exceptions shared by the enrichment pipeline."""

from typing import Optional


class PlaceBotError(Exception):
    """Base class for errors raised by placebot."""


class ExhaustedError(PlaceBotError):
    """Raised when a retryable operation keeps failing past its attempt budget.

    Attributes:
        label: Human-readable name of the operation that was retried
        last_error: The error raised by the final attempt
        attempts: Number of attempts made
    """

    def __init__(self, label: str, last_error: Exception, attempts: int):
        super().__init__(f"{label} failed after {attempts} attempts: {last_error}")
        self.label = label
        self.last_error = last_error
        self.attempts = attempts


class FatalUpstreamError(PlaceBotError):
    """An upstream service answered with something that retrying will not fix.

    Covers non-2xx statuses other than 429 and payloads that cannot be
    decoded into the expected shape.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.original_error = original_error

    @classmethod
    def from_malformed_payload(cls, service: str, error: Exception) -> "FatalUpstreamError":
        """Create error for a response body that is not the JSON we expect."""
        return cls(
            f"{service} returned a malformed response: {type(error).__name__}: {error}",
            original_error=error,
        )


class ConfigurationError(PlaceBotError):
    """Raised before a run starts when required configuration is missing."""

    @classmethod
    def from_missing_credential(cls, env_var: str, service: str) -> "ConfigurationError":
        """Create error for a credential that must be set in the environment."""
        message = (
            f"{service} requires an API key but {env_var} is not set.\n\n"
            "To fix this issue:\n"
            f"1. Export it in your shell:\n   export {env_var}='...'\n\n"
            "2. Or add it to the .env file loaded by your runner."
        )
        return cls(message)
