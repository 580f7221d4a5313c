"""
Subdomain discovery engine.

Runs every registered technique concurrently, each inside its own envelope
and all inside the profile's overall budget, then:

1. merges their candidates into one normalised set, attributing each
   hostname to the highest-priority technique that produced it;
2. HEADs every candidate (HTTPS, then HTTP) through the bounded executor
   until the verification budget is spent;
3. builds the :class:`DiscoveryReport`.

A technique that fails or overruns its envelope contributes an error string
and nothing else.
"""

from __future__ import annotations

import asyncio
import functools
import time
from datetime import datetime, timezone
from typing import Iterable, Optional

import deepscan.modules  # noqa: F401  (registers the techniques)
from deepscan.config import get_settings
from deepscan.core.errors import error_kind
from deepscan.core.logging import get_logger
from deepscan.core.security import normalize_hostname
from deepscan.engine.executor import Deadline, ProbeExecutor
from deepscan.engine.results import (
    METHOD_PRIORITY,
    DiscoveryMethod,
    DiscoveryRecord,
    DiscoveryReport,
)
from deepscan.modules.base import (
    OPTIMIZED,
    PROFILES,
    BaseDiscoveryTechnique,
    DiscoveryProfile,
    TechniqueResult,
)
from deepscan.modules.registry import TechniqueRegistry
from deepscan.probes.web import build_client, check_existence

logger = get_logger(__name__)


def get_profile(mode: Optional[str]) -> DiscoveryProfile:
    """Return the profile for *mode*, defaulting to optimized."""
    if not mode:
        return OPTIMIZED
    try:
        return PROFILES[mode]
    except KeyError:
        raise ValueError(f"Unknown discovery mode: {mode!r}") from None


class DiscoveryEngine:
    """Best-effort, time-boxed subdomain enumeration.

    Attributes:
        profile:    Mode tuning (see :data:`~deepscan.modules.base.OPTIMIZED`).
        techniques: Technique instances, in attribution-priority order.
    """

    def __init__(
        self,
        profile: DiscoveryProfile = OPTIMIZED,
        techniques: Optional[Iterable[BaseDiscoveryTechnique]] = None,
    ) -> None:
        self.profile = profile
        self.techniques: list[BaseDiscoveryTechnique] = (
            list(techniques) if techniques is not None else TechniqueRegistry.get_all()
        )

    # ── Public API ───────────────────────────────────────────────────────

    async def discover(self, domain: str) -> DiscoveryReport:
        """Enumerate subdomains of *domain* within the profile's budget.

        Args:
            domain: Validated root domain.

        Returns:
            The merged report.  Never raises for network conditions.
        """
        start = time.monotonic()
        deadline = Deadline(self.profile.budget)
        logger.info(
            "Discovery started (%s mode, %d techniques)",
            self.profile.mode,
            len(self.techniques),
            extra={"action": "discovery_start", "target": domain},
        )

        # Reserve the verification budget out of the overall budget.
        gather_budget = max(self.profile.budget - self.profile.verify_budget, 0.0)
        results: list[TechniqueResult] = await asyncio.gather(
            *(self._run_technique(technique, domain, gather_budget) for technique in self.techniques)
        )

        candidates, addresses, confirmed, discovered_from = self._merge(results)
        errors = [error for result in results for error in result.errors]

        records = await self._verify(domain, candidates, addresses, confirmed, deadline)

        method_counts = {method.value: 0 for method in METHOD_PRIORITY}
        for record in records:
            method_counts[record.method.value] += 1

        report = DiscoveryReport(
            domain=domain,
            mode=self.profile.mode,
            subdomains=records,
            total_checked=len(candidates),
            method_counts=method_counts,
            discovered_from=discovered_from,
            scan_time_ms=int((time.monotonic() - start) * 1000),
            scanned_at=datetime.now(timezone.utc),
            errors=errors,
        )
        logger.info(
            "Discovery finished: %d of %d candidates verified in %d ms",
            report.total_found,
            report.total_checked,
            report.scan_time_ms,
            extra={"action": "discovery_complete", "target": domain},
        )
        return report

    # ── Technique execution ──────────────────────────────────────────────

    async def _run_technique(
        self,
        technique: BaseDiscoveryTechnique,
        domain: str,
        budget: float,
    ) -> TechniqueResult:
        """Run one technique inside ``min(envelope, budget)``; never raises."""
        limit = min(technique.envelope(self.profile), budget)
        start = time.monotonic()
        try:
            return await asyncio.wait_for(technique.execute(domain, self.profile), timeout=limit)
        except asyncio.TimeoutError:
            error_msg = f"{technique.method.value} exceeded its {limit:.1f}s envelope"
        except Exception as exc:  # noqa: BLE001
            error_msg = f"{technique.method.value} failed ({error_kind(exc)}): {exc}"

        logger.warning(error_msg, extra={"action": "technique_failed", "target": domain})
        return TechniqueResult(
            method=technique.method,
            errors=[error_msg],
            duration_seconds=round(time.monotonic() - start, 3),
        )

    @staticmethod
    def _merge(
        results: list[TechniqueResult],
    ) -> tuple[dict[str, DiscoveryMethod], dict[str, str], dict[str, str], dict[str, int]]:
        """Deduplicate candidates and attribute each to one technique.

        Returns:
            ``(candidates, addresses, confirmed, discovered_from)`` where
            *candidates* maps hostname to method in priority order.
        """
        rank = {method: index for index, method in enumerate(METHOD_PRIORITY)}
        ordered = sorted(results, key=lambda result: rank[result.method])

        candidates: dict[str, DiscoveryMethod] = {}
        addresses: dict[str, str] = {}
        confirmed: dict[str, str] = {}
        discovered_from: dict[str, int] = {method.value: 0 for method in METHOD_PRIORITY}

        for result in ordered:
            discovered_from[result.method.value] += len(result.candidates)
            for raw_name in result.candidates:
                hostname = normalize_hostname(raw_name)
                candidates.setdefault(hostname, result.method)
                if raw_name in result.addresses:
                    addresses.setdefault(hostname, result.addresses[raw_name])
                if raw_name in result.confirmed:
                    confirmed.setdefault(hostname, result.confirmed[raw_name])

        discovered_from["total_unique"] = len(candidates)
        return candidates, addresses, confirmed, discovered_from

    # ── Verification ─────────────────────────────────────────────────────

    async def _verify(
        self,
        domain: str,
        candidates: dict[str, DiscoveryMethod],
        addresses: dict[str, str],
        confirmed: dict[str, str],
        deadline: Deadline,
    ) -> list[DiscoveryRecord]:
        """HEAD every candidate until the verification budget runs out.

        Hosts the port scan already proved live are kept even when the HEAD
        fails; the HTTP failure is then reported in ``error``.
        """
        if not candidates:
            return []

        hostnames = list(candidates)
        budget = Deadline(min(self.profile.verify_budget, max(deadline.remaining(), 0.0)))
        executor = ProbeExecutor(self.profile.verify_width, name=f"verify:{domain}")

        async with build_client(self.profile.verify_timeout, get_settings().USER_AGENT) as client:
            outcomes = await executor.run(
                [functools.partial(check_existence, client, hostname) for hostname in hostnames],
                timeout=self.profile.verify_timeout * 2,
                deadline=budget,
            )

        records: list[DiscoveryRecord] = []
        for hostname, outcome in zip(hostnames, outcomes):
            if outcome.ok:
                records.append(DiscoveryRecord(
                    hostname=hostname,
                    alive=True,
                    method=candidates[hostname],
                    address=addresses.get(hostname),
                    error=outcome.payload.get("note"),
                ))
            elif hostname in confirmed:
                records.append(DiscoveryRecord(
                    hostname=hostname,
                    alive=True,
                    method=candidates[hostname],
                    address=addresses.get(hostname),
                    error=f"{confirmed[hostname]}, HTTP check {outcome.status.value}: {outcome.reason}",
                ))

        logger.debug(
            "Verification counters: %s",
            executor.stats.as_dict(),
            extra={"action": "verify_complete", "target": domain},
        )
        return records


async def find_subdomains(domain: str, mode: Optional[str] = None) -> DiscoveryReport:
    """Convenience wrapper: run a full discovery of *domain* in *mode*."""
    return await DiscoveryEngine(get_profile(mode)).discover(domain)
