"""
Wordlist technique.

Turns a curated prefix list into candidate hostnames.  Nothing is probed
here: existence is decided by the discovery engine's shared HTTP
verification pass, so every candidate is checked exactly once.
"""

from __future__ import annotations

from deepscan.engine.results import DiscoveryMethod
from deepscan.modules.base import BaseDiscoveryTechnique, DiscoveryProfile, TechniqueResult
from deepscan.modules.registry import TechniqueRegistry
from deepscan.modules.wordlists import wordlist_prefixes


@TechniqueRegistry.register
class WordlistTechnique(BaseDiscoveryTechnique):
    """Candidate generation from common subdomain prefixes."""

    method = DiscoveryMethod.WORDLIST
    description = "Common subdomain wordlist"

    def envelope(self, profile: DiscoveryProfile) -> float:
        return 1.0

    async def execute(self, domain: str, profile: DiscoveryProfile) -> TechniqueResult:
        result = TechniqueResult(method=self.method)
        for prefix in wordlist_prefixes(profile.exhaustive):
            result.add(f"{prefix}.{domain}")
        return result
