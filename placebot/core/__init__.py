"""Cross-cutting building blocks: retries, caching, source fallback and errors."""

from placebot.core.cache import SourceCache
from placebot.core.exceptions import (
    ConfigurationError,
    ExhaustedError,
    FatalUpstreamError,
    PlaceBotError,
)
from placebot.core.fallback import ProbeResult, SourceProbe, first_success
from placebot.core.retry import ErrorKind, RetryExecutor, RetryPolicy, classify_error

__all__ = [
    # Errors
    "PlaceBotError",
    "ExhaustedError",
    "FatalUpstreamError",
    "ConfigurationError",
    # Retry
    "ErrorKind",
    "RetryPolicy",
    "RetryExecutor",
    "classify_error",
    # Cache / fallback
    "SourceCache",
    "SourceProbe",
    "ProbeResult",
    "first_success",
]
