"""
Base interface for all subdomain discovery techniques.

Defines the per-mode tuning profile, the standard result container, and the
abstract base class every technique implements.  The discovery engine runs
all registered techniques concurrently, each inside its own time envelope,
and merges what they return.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from deepscan.engine.results import DiscoveryMethod


@dataclass(frozen=True)
class DiscoveryProfile:
    """Timeouts, budgets and widths for one discovery mode.

    All durations are in seconds.

    Attributes:
        mode:             ``"optimized"`` or ``"exhaustive"``.
        budget:           Overall wall-clock budget of a discovery run.
        port_timeout:     TCP connect timeout per port.
        port_candidates:  Maximum number of hosts the port scan probes.
        port_envelope:    Time envelope of the port scan technique.
        port_width:       Hosts port-scanned concurrently.
        dns_timeout:      Timeout of a single DNS lookup.
        dns_envelope:     Time envelope of the DNS brute force.
        dns_width:        Lookups in flight during brute force.
        ct_timeout:       Timeout per Certificate Transparency provider.
        ct_max_entries:   crt.sh entries parsed; ``None`` parses all.
        san_timeout:      TLS handshake timeout for SAN extraction.
        verify_budget:    Budget of the HTTP verification pass.
        verify_timeout:   HEAD timeout per verification request.
        verify_width:     Verification requests in flight.
        exhaustive:       Enables the extra wordlists and lookups.
    """

    mode: str
    budget: float
    port_timeout: float
    port_candidates: int
    port_envelope: float
    port_width: int
    dns_timeout: float
    dns_envelope: float
    dns_width: int
    ct_timeout: float
    ct_max_entries: Optional[int]
    san_timeout: float
    verify_budget: float
    verify_timeout: float
    verify_width: int
    exhaustive: bool = False


OPTIMIZED = DiscoveryProfile(
    mode="optimized",
    budget=10.0,
    port_timeout=0.8,
    port_candidates=40,
    port_envelope=5.0,
    port_width=8,
    dns_timeout=0.8,
    dns_envelope=4.0,
    dns_width=15,
    ct_timeout=3.0,
    ct_max_entries=100,
    san_timeout=2.0,
    verify_budget=3.0,
    verify_timeout=1.5,
    verify_width=10,
)

EXHAUSTIVE = DiscoveryProfile(
    mode="exhaustive",
    budget=45.0,
    port_timeout=2.0,
    port_candidates=100,
    port_envelope=15.0,
    port_width=20,
    dns_timeout=2.0,
    dns_envelope=15.0,
    dns_width=30,
    ct_timeout=10.0,
    ct_max_entries=None,
    san_timeout=5.0,
    verify_budget=20.0,
    verify_timeout=2.0,
    verify_width=20,
    exhaustive=True,
)

PROFILES: dict[str, DiscoveryProfile] = {
    OPTIMIZED.mode: OPTIMIZED,
    EXHAUSTIVE.mode: EXHAUSTIVE,
}


@dataclass
class TechniqueResult:
    """Standardised result container returned by every technique.

    Attributes:
        method:           Technique that produced this result.
        candidates:       Normalised in-domain hostnames, in discovery order.
        addresses:        Addresses learned while discovering, by hostname.
        confirmed:        Hosts the technique itself proved live, mapped to
                          a short proof (e.g. ``"port 443 open"``).
        errors:           Technique-level error messages.
        duration_seconds: Wall-clock time spent.
        stats:            Executor counters, when an executor was used.
    """

    method: DiscoveryMethod
    candidates: list[str] = field(default_factory=list)
    addresses: dict[str, str] = field(default_factory=dict)
    confirmed: dict[str, str] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0
    stats: dict[str, Any] = field(default_factory=dict)

    def add(self, hostname: str, address: Optional[str] = None) -> None:
        if hostname not in self.candidates:
            self.candidates.append(hostname)
        if address and hostname not in self.addresses:
            self.addresses[hostname] = address


class BaseDiscoveryTechnique(ABC):
    """Abstract base class that every discovery technique must implement.

    Subclasses **must** override :meth:`execute` and :meth:`envelope` and set
    ``method`` and ``description``.  :meth:`execute` must not raise for
    ordinary network failures; it records them in ``errors`` instead.
    """

    method: DiscoveryMethod
    description: str = ""

    @abstractmethod
    async def execute(self, domain: str, profile: DiscoveryProfile) -> TechniqueResult:
        """Discover candidate subdomains of *domain*.

        Args:
            domain:  Validated root domain (e.g. ``"acme-corp.de"``).
            profile: Mode tuning.

        Returns:
            A :class:`TechniqueResult` with normalised in-domain candidates.
        """

    @abstractmethod
    def envelope(self, profile: DiscoveryProfile) -> float:
        """Hard time limit, in seconds, the engine enforces around :meth:`execute`."""
