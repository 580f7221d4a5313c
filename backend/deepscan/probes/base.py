"""
Probe outcome container and the fallback-chain combinator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence

from deepscan.core.errors import ProbeTimeout, error_kind

logger = logging.getLogger(__name__)

Probe = Callable[[], Awaitable[Any]]


class ProbeStatus(str, Enum):
    """Tag of a :class:`ProbeOutcome`."""

    SUCCESS = "success"
    FAILURE = "failure"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of exactly one probe invocation.

    Attributes:
        status:  Which of the three variants this is.
        payload: Probe-specific value, only set on success.
        reason:  Human-readable cause, only set on failure or timeout.
        link:    Index of the fallback link that produced the outcome.
    """

    status: ProbeStatus
    payload: Any = None
    reason: Optional[str] = None
    link: int = 0

    @classmethod
    def success(cls, payload: Any) -> "ProbeOutcome":
        return cls(ProbeStatus.SUCCESS, payload=payload)

    @classmethod
    def failure(cls, reason: str) -> "ProbeOutcome":
        return cls(ProbeStatus.FAILURE, reason=reason)

    @classmethod
    def timed_out(cls, reason: str = "timed out") -> "ProbeOutcome":
        return cls(ProbeStatus.TIMED_OUT, reason=reason)

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ProbeOutcome":
        """Classify an exception raised by a probe."""
        reason = str(exc) or exc.__class__.__name__
        if error_kind(exc) == ProbeTimeout.kind:
            return cls.timed_out(reason)
        return cls.failure(reason)

    @property
    def ok(self) -> bool:
        return self.status is ProbeStatus.SUCCESS


async def first_success(probes: Sequence[Probe]) -> ProbeOutcome:
    """Run *probes* in order and stop at the first one that yields a payload.

    A link that returns ``None`` or an empty collection, or that raises, is
    treated as a miss and the next link is tried.  Cancellation is never
    swallowed.

    Args:
        probes: Ordered fallbacks, e.g. ``[https_head, http_head]``.

    Returns:
        ``success`` with the payload of the first hit, or the outcome of the
        last miss.  ``link`` records which fallback answered.
    """
    last = ProbeOutcome.failure("no probes given")
    for index, probe in enumerate(probes):
        try:
            payload = await probe()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Fallback link %d failed: %s", index, exc)
            last = ProbeOutcome.from_exception(exc)
            continue
        if payload is None or payload == [] or payload == ():
            last = ProbeOutcome.failure("no result")
            continue
        return ProbeOutcome(ProbeStatus.SUCCESS, payload=payload, link=index)
    return last
