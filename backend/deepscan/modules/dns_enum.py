"""
DNS enumeration technique.

Collects in-domain hostnames from the root domain's MX and TXT records (and
NS in exhaustive mode), derives candidates from security keywords found in
TXT records, and brute-forces a curated prefix list through the fallback
chain A, then AAAA (then CNAME in exhaustive mode).  Exhaustive mode also
reverse-resolves up to twenty of the addresses it learned.

This is an **active** technique that generates DNS traffic against the
target's authoritative nameservers.
"""

from __future__ import annotations

import functools
import logging
import re
import time
from typing import Any

from deepscan.core.security import is_subdomain_of, normalize_hostname
from deepscan.engine.executor import Deadline, ProbeExecutor
from deepscan.engine.results import DiscoveryMethod
from deepscan.modules.base import BaseDiscoveryTechnique, DiscoveryProfile, TechniqueResult
from deepscan.modules.registry import TechniqueRegistry
from deepscan.modules.wordlists import TXT_KEYWORD_HINTS, brute_force_prefixes
from deepscan.probes import resolver as dns_probe

logger = logging.getLogger(__name__)

_MAX_REVERSE_LOOKUPS = 20
_HOSTNAME_IN_TEXT = re.compile(r"[a-z0-9*](?:[a-z0-9.-]*[a-z0-9])?", re.IGNORECASE)


def hostnames_in_txt(records: list[str], domain: str) -> list[str]:
    """Return in-domain hostnames and keyword-hint candidates found in TXT records.

    Args:
        records: TXT record strings of the root domain.
        domain:  Root domain.

    Returns:
        Normalised candidates in the order they were found.
    """
    found: list[str] = []
    for record in records:
        lowered = record.lower()
        for token in _HOSTNAME_IN_TEXT.findall(lowered):
            hostname = normalize_hostname(token)
            if is_subdomain_of(hostname, domain):
                found.append(hostname)
        for keyword in TXT_KEYWORD_HINTS:
            if keyword in lowered:
                found.append(f"{keyword}.{domain}")
    return list(dict.fromkeys(found))


@TechniqueRegistry.register
class DnsEnumTechnique(BaseDiscoveryTechnique):
    """Subdomain discovery from DNS records and a bounded brute force.

    Negative answers are silent; lookup timeouts are counted by the executor
    and never abort the technique.
    """

    method = DiscoveryMethod.DNS_ENUMERATION
    description = "DNS enumeration (MX, TXT, NS, brute force, reverse DNS)"

    def envelope(self, profile: DiscoveryProfile) -> float:
        # Root records, then the brute force, then (exhaustive) reverse DNS.
        return profile.dns_envelope + profile.dns_timeout * (3 if profile.exhaustive else 2)

    async def execute(self, domain: str, profile: DiscoveryProfile) -> TechniqueResult:
        """Enumerate subdomains of *domain* through DNS.

        Returns:
            A :class:`TechniqueResult` with every in-domain hostname seen and
            the first address of each brute-forced host.
        """
        start: float = time.monotonic()
        result = TechniqueResult(method=self.method)
        resolver = dns_probe.build_resolver(profile.dns_timeout)

        await self._root_records(resolver, domain, profile, result)
        stats = await self._brute_force(resolver, domain, profile, result)
        if profile.exhaustive:
            await self._reverse_lookups(resolver, domain, profile, result)

        result.stats = stats
        result.duration_seconds = round(time.monotonic() - start, 3)
        logger.info(
            "DNS enumeration produced %d candidates for %s in %.1fs",
            len(result.candidates),
            domain,
            result.duration_seconds,
        )
        return result

    # ── Phases ───────────────────────────────────────────────────────────

    @staticmethod
    async def _root_records(
        resolver: Any,
        domain: str,
        profile: DiscoveryProfile,
        result: TechniqueResult,
    ) -> None:
        rdtypes = ["MX", "TXT"] + (["NS"] if profile.exhaustive else [])
        executor = ProbeExecutor(len(rdtypes), name=f"dns-root:{domain}")
        outcomes = await executor.run(
            [functools.partial(dns_probe.resolve_record, resolver, domain, rdtype) for rdtype in rdtypes],
            timeout=profile.dns_timeout,
        )

        for rdtype, outcome in zip(rdtypes, outcomes):
            if not outcome.ok:
                logger.debug("%s lookup for %s: %s", rdtype, domain, outcome.reason)
                continue
            if rdtype == "TXT":
                names = hostnames_in_txt(outcome.payload, domain)
            else:
                names = [normalize_hostname(name) for name in outcome.payload]
            for hostname in names:
                if is_subdomain_of(hostname, domain):
                    result.add(hostname)

    @staticmethod
    async def _brute_force(
        resolver: Any,
        domain: str,
        profile: DiscoveryProfile,
        result: TechniqueResult,
    ) -> dict[str, int]:
        chain = ("A", "AAAA", "CNAME") if profile.exhaustive else ("A", "AAAA")
        hostnames = [f"{prefix}.{domain}" for prefix in brute_force_prefixes(profile.exhaustive)]

        executor = ProbeExecutor(profile.dns_width, name=f"dns-brute:{domain}")
        outcomes = await executor.run(
            [functools.partial(dns_probe.resolve_with_fallback, resolver, hostname, chain)
             for hostname in hostnames],
            timeout=profile.dns_timeout * len(chain),
            deadline=Deadline(profile.dns_envelope),
        )

        for hostname, outcome in zip(hostnames, outcomes):
            if not outcome.ok:
                continue
            rdtype, answers = outcome.payload
            result.add(hostname, answers[0] if rdtype == "A" else None)

        if executor.stats.skipped:
            result.errors.append(
                f"DNS brute force stopped after {executor.stats.started} of {len(hostnames)} names"
            )
        return executor.stats.as_dict()

    @staticmethod
    async def _reverse_lookups(
        resolver: Any,
        domain: str,
        profile: DiscoveryProfile,
        result: TechniqueResult,
    ) -> None:
        addresses = list(dict.fromkeys(result.addresses.values()))[:_MAX_REVERSE_LOOKUPS]
        if not addresses:
            return

        executor = ProbeExecutor(profile.dns_width, name=f"dns-ptr:{domain}")
        outcomes = await executor.run(
            [functools.partial(dns_probe.reverse_lookup, resolver, address) for address in addresses],
            timeout=profile.dns_timeout,
            deadline=Deadline(profile.dns_timeout),
        )
        for address, outcome in zip(addresses, outcomes):
            if not outcome.ok:
                continue
            for name in outcome.payload:
                hostname = normalize_hostname(name)
                if is_subdomain_of(hostname, domain):
                    result.add(hostname, address)
