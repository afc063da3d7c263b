"""First-success-wins reduction over ordered source probes.

A probe is a named coroutine function taking the subject being enriched
and returning a value, or None/empty when the source had nothing. Probes
run strictly in order and the first accepted value stops the chain. A
probe whose `applies` predicate rejects the subject is skipped.

Errors raised by a probe are not caught here: the caller decides whether
a failing source aborts the chain.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Iterable, List, Optional, TypeVar

from placebot.utils.logger import LoggerManager

S = TypeVar("S")
T = TypeVar("T")

logger = LoggerManager.get_logger(__name__)


def _always(_: Any) -> bool:
    return True


def is_non_empty(value: Any) -> bool:
    """Accept anything that is not None and, if sized, not empty."""
    if value is None:
        return False
    try:
        return len(value) > 0
    except TypeError:
        return True


@dataclass(frozen=True)
class SourceProbe(Generic[S, T]):
    name: str
    fetch: Callable[[S], Awaitable[Optional[T]]]
    applies: Callable[[S], bool] = _always


@dataclass
class ProbeResult(Generic[T]):
    source: Optional[str] = None
    value: Optional[T] = None
    tried: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.source is not None


async def first_success(
    probes: Iterable[SourceProbe[S, T]],
    subject: S,
    accept: Callable[[Any], bool] = is_non_empty,
) -> ProbeResult[T]:
    """Run `probes` in order against `subject` until one returns an accepted value."""
    result: ProbeResult[T] = ProbeResult()
    for probe in probes:
        if not probe.applies(subject):
            result.skipped.append(probe.name)
            logger.debug("fallback.skip", extra={"extra_data": {"probe": probe.name}})
            continue
        result.tried.append(probe.name)
        value = await probe.fetch(subject)
        if accept(value):
            result.source = probe.name
            result.value = value
            return result
    return result
