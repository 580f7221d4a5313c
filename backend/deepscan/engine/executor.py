"""
Bounded concurrent probe executor.

Runs a batch of zero-argument probe coroutines with a fixed concurrency
width.  Slots are windowed: a new probe starts as soon as any running probe
finishes.  Each probe is raced against ``min(per-probe timeout, remaining
budget)`` and cancelled when it loses; probes whose turn comes after the
budget has run out are never started.

The executor never raises.  It returns one :class:`ProbeOutcome` per probe,
in input order.

Usage::

    executor = ProbeExecutor(width=10)
    outcomes = await executor.run(probes, timeout=1.5, deadline=Deadline(3.0))
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import asdict, dataclass
from typing import Optional, Sequence

from deepscan.core.logging import get_logger
from deepscan.probes.base import Probe, ProbeOutcome, ProbeStatus

logger = get_logger(__name__)


class Deadline:
    """Absolute wall-clock cutoff measured on the monotonic clock."""

    def __init__(self, budget_seconds: float) -> None:
        self.budget_seconds = budget_seconds
        self._expires_at = time.monotonic() + budget_seconds

    def remaining(self) -> float:
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self._expires_at

    def cap(self, timeout: float) -> float:
        """Clamp *timeout* to what is left of the budget."""
        return min(timeout, self.remaining())


@dataclass
class ExecutorStats:
    """Progress counters of one executor.

    ``started`` counts probes that were actually invoked; skipped probes are
    only counted under ``skipped``.
    """

    started: int = 0
    succeeded: int = 0
    failed: int = 0
    timed_out: int = 0
    skipped: int = 0

    def record(self, outcome: ProbeOutcome) -> None:
        if outcome.status is ProbeStatus.SUCCESS:
            self.succeeded += 1
        elif outcome.status is ProbeStatus.TIMED_OUT:
            self.timed_out += 1
        else:
            self.failed += 1

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class ProbeExecutor:
    """Run probes with at most *width* in flight.

    A probe may return a plain payload (wrapped as ``success``) or a ready
    :class:`ProbeOutcome` (passed through, e.g. from
    :func:`~deepscan.probes.base.first_success`).  Counters accumulate over
    the lifetime of the instance, so use one executor per batch you want to
    report on.

    Attributes:
        width: Maximum number of probes running at the same time.
        stats: Counters updated as probes finish.
    """

    def __init__(self, width: int, name: str = "probes") -> None:
        if width < 1:
            raise ValueError("Executor width must be at least 1.")
        self.width = width
        self.name = name
        self.stats = ExecutorStats()

    async def run(
        self,
        probes: Sequence[Probe],
        timeout: float,
        deadline: Optional[Deadline] = None,
    ) -> list[ProbeOutcome]:
        """Execute *probes* and return their outcomes in input order.

        Args:
            probes:   Zero-argument coroutine factories.
            timeout:  Upper bound for a single probe, in seconds.
            deadline: Budget shared by the whole batch; ``None`` means only
                the per-probe timeout applies.

        Returns:
            One outcome per probe, ``outcomes[i]`` belonging to ``probes[i]``.
        """
        if not probes:
            return []

        semaphore = asyncio.Semaphore(self.width)

        async def _slot(probe: Probe) -> ProbeOutcome:
            async with semaphore:
                if deadline is not None and deadline.expired:
                    self.stats.skipped += 1
                    return ProbeOutcome.timed_out("skipped: budget exhausted")

                limit = deadline.cap(timeout) if deadline is not None else timeout
                self.stats.started += 1
                try:
                    payload = await asyncio.wait_for(probe(), timeout=limit)
                except asyncio.TimeoutError:
                    outcome = ProbeOutcome.timed_out(f"no answer within {limit:.2f}s")
                except Exception as exc:  # noqa: BLE001
                    outcome = ProbeOutcome.from_exception(exc)
                else:
                    outcome = payload if isinstance(payload, ProbeOutcome) else ProbeOutcome.success(payload)

                self.stats.record(outcome)
                return outcome

        outcomes = list(await asyncio.gather(*(_slot(probe) for probe in probes)))

        logger.debug(
            "%s: %d probes, %s",
            self.name,
            len(probes),
            self.stats.as_dict(),
            extra={"action": "executor_run", "target": self.name},
        )
        return outcomes
