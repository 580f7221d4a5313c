"""
Port scan technique.

Resolves a prioritised list of likely subdomains and, for each that resolves,
races TCP connects to the common web ports.  A candidate counts as live when
it has an A record **and** one of the ports accepts a connection.  This is an
**active** technique that opens TCP connections to the target hosts.
"""

from __future__ import annotations

import functools
import logging
import time
from typing import Optional

from deepscan.engine.executor import Deadline, ProbeExecutor
from deepscan.engine.results import DiscoveryMethod
from deepscan.modules.base import BaseDiscoveryTechnique, DiscoveryProfile, TechniqueResult
from deepscan.modules.registry import TechniqueRegistry
from deepscan.modules.wordlists import port_scan_prefixes
from deepscan.probes import resolver as dns_probe
from deepscan.probes.tcp import WEB_PORTS, first_open_port

logger = logging.getLogger(__name__)


@TechniqueRegistry.register
class PortScanTechnique(BaseDiscoveryTechnique):
    """Live-host discovery via DNS resolution plus TCP connects on web ports."""

    method = DiscoveryMethod.PORT_SCAN
    description = "Port scan of likely subdomains (80, 443, 8080, 8443)"

    def envelope(self, profile: DiscoveryProfile) -> float:
        # Headroom past the executor deadline, which ends the scan at port_envelope.
        return profile.port_envelope + profile.dns_timeout + profile.port_timeout

    async def execute(self, domain: str, profile: DiscoveryProfile) -> TechniqueResult:
        """Port-scan the prioritised prefixes of *domain*.

        Returns:
            A :class:`TechniqueResult` whose ``confirmed`` map names the open
            port of every live host.
        """
        start: float = time.monotonic()
        result = TechniqueResult(method=self.method)

        hostnames = [f"{prefix}.{domain}" for prefix in port_scan_prefixes(
            profile.exhaustive, profile.port_candidates
        )]
        resolver = dns_probe.build_resolver(profile.dns_timeout)

        async def _scan_host(hostname: str) -> Optional[tuple[str, int]]:
            address = await dns_probe.first_address(resolver, hostname)
            if address is None:
                return None
            port = await first_open_port(address, WEB_PORTS, profile.port_timeout)
            return (address, port) if port is not None else None

        executor = ProbeExecutor(profile.port_width, name=f"portscan:{domain}")
        outcomes = await executor.run(
            [functools.partial(_scan_host, hostname) for hostname in hostnames],
            timeout=profile.dns_timeout + profile.port_timeout,
            deadline=Deadline(profile.port_envelope),
        )

        for hostname, outcome in zip(hostnames, outcomes):
            if outcome.ok and outcome.payload is not None:
                address, port = outcome.payload
                result.add(hostname, address)
                result.confirmed[hostname] = f"port {port} open"

        result.stats = executor.stats.as_dict()
        result.duration_seconds = round(time.monotonic() - start, 3)
        logger.info(
            "Port scan found %d live hosts out of %d candidates in %.1fs",
            len(result.confirmed),
            len(hostnames),
            result.duration_seconds,
        )
        return result
