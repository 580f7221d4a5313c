"""
SSL/SAN technique.

Completes a TLS handshake with the root domain on port 443, without chain or
hostname validation, and harvests the DNS names of the certificate's
Subject Alternative Name extension.  This is an **active** technique that
establishes one TLS connection.
"""

from __future__ import annotations

import logging
import time

from deepscan.core.errors import DeepScanError
from deepscan.core.security import is_subdomain_of, normalize_hostname
from deepscan.engine.results import DiscoveryMethod
from deepscan.modules.base import BaseDiscoveryTechnique, DiscoveryProfile, TechniqueResult
from deepscan.modules.registry import TechniqueRegistry
from deepscan.probes.tls import fetch_san_names

logger = logging.getLogger(__name__)


@TechniqueRegistry.register
class SanAnalysisTechnique(BaseDiscoveryTechnique):
    """Subdomain discovery from the root certificate's SAN list."""

    method = DiscoveryMethod.SAN_ANALYSIS
    description = "TLS certificate Subject Alternative Names"

    def envelope(self, profile: DiscoveryProfile) -> float:
        return profile.san_timeout + 0.5

    async def execute(self, domain: str, profile: DiscoveryProfile) -> TechniqueResult:
        """Read the SAN names presented by ``domain:443``."""
        start: float = time.monotonic()
        result = TechniqueResult(method=self.method)

        try:
            names = await fetch_san_names(domain, 443, profile.san_timeout)
        except DeepScanError as exc:
            error_msg = f"SAN extraction failed: {exc}"
            logger.warning(error_msg)
            result.errors.append(error_msg)
            names = []

        for raw_name in names:
            hostname = normalize_hostname(raw_name)
            if is_subdomain_of(hostname, domain):
                result.add(hostname)

        result.duration_seconds = round(time.monotonic() - start, 3)
        logger.info("SAN analysis found %d names for %s", len(result.candidates), domain)
        return result
