"""
Certificate Transparency technique.

Queries crt.sh (and, in exhaustive mode, Cert Spotter) for certificates
issued to the target domain and keeps every true subdomain named in them.
This is a purely passive technique; a failing provider is recorded as an
error and never aborts discovery.
"""

from __future__ import annotations

import functools
import logging
import time

import httpx

from deepscan.config import get_settings
from deepscan.core.security import is_subdomain_of, normalize_hostname
from deepscan.engine.executor import ProbeExecutor
from deepscan.engine.results import DiscoveryMethod
from deepscan.modules.base import BaseDiscoveryTechnique, DiscoveryProfile, TechniqueResult
from deepscan.modules.registry import TechniqueRegistry
from deepscan.probes.certlogs import query_certspotter, query_crtsh

logger = logging.getLogger(__name__)


@TechniqueRegistry.register
class CertificateTransparencyTechnique(BaseDiscoveryTechnique):
    """Subdomain discovery via Certificate Transparency logs.

    Each provider is queried once and bounded by the profile's CT timeout.
    Wildcard labels are stripped and only names strictly below the root
    domain are kept.
    """

    method = DiscoveryMethod.CERTIFICATE_TRANSPARENCY
    description = "Certificate Transparency logs (crt.sh, Cert Spotter)"

    def envelope(self, profile: DiscoveryProfile) -> float:
        return profile.ct_timeout + 0.5

    async def execute(self, domain: str, profile: DiscoveryProfile) -> TechniqueResult:
        """Query the CT providers for *domain*.

        Returns:
            A :class:`TechniqueResult` with the subdomains named in logged
            certificates.
        """
        start: float = time.monotonic()
        result = TechniqueResult(method=self.method)
        settings = get_settings()

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(profile.ct_timeout),
            follow_redirects=True,
            headers={"User-Agent": settings.USER_AGENT},
        ) as client:
            providers = {"crt.sh": functools.partial(query_crtsh, client, domain, profile.ct_max_entries)}
            if profile.exhaustive:
                providers["Cert Spotter"] = functools.partial(query_certspotter, client, domain)

            executor = ProbeExecutor(len(providers), name=f"ct:{domain}")
            outcomes = await executor.run(list(providers.values()), timeout=profile.ct_timeout)

        for provider, outcome in zip(providers, outcomes):
            if not outcome.ok:
                error_msg = f"{provider} query {outcome.status.value}: {outcome.reason}"
                logger.warning(error_msg)
                result.errors.append(error_msg)
                continue
            for raw_name in outcome.payload:
                hostname = normalize_hostname(raw_name)
                if " " in hostname or not is_subdomain_of(hostname, domain):
                    continue
                result.add(hostname)

        result.stats = executor.stats.as_dict()
        result.duration_seconds = round(time.monotonic() - start, 3)
        logger.info(
            "CT logs named %d subdomains of %s in %.1fs",
            len(result.candidates),
            domain,
            result.duration_seconds,
        )
        return result
