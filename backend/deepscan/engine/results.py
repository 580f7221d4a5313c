"""
Result containers shared by the discovery engine, the deep-scan coordinator,
the score aggregator and the HTTP layer.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


# ── Discovery ────────────────────────────────────────────────────────────────

class DiscoveryMethod(str, Enum):
    """Technique credited with finding a subdomain."""

    PORT_SCAN = "port_scan"
    DNS_ENUMERATION = "dns_enumeration"
    CERTIFICATE_TRANSPARENCY = "certificate_transparency"
    SAN_ANALYSIS = "san_analysis"
    WORDLIST = "wordlist"


# Attribution order when several techniques produced the same hostname.
# SAN analysis is the fallback attribution and therefore comes last.
METHOD_PRIORITY: tuple[DiscoveryMethod, ...] = (
    DiscoveryMethod.PORT_SCAN,
    DiscoveryMethod.DNS_ENUMERATION,
    DiscoveryMethod.CERTIFICATE_TRANSPARENCY,
    DiscoveryMethod.WORDLIST,
    DiscoveryMethod.SAN_ANALYSIS,
)


@dataclass
class DiscoveryRecord:
    """One unique, verified subdomain."""

    hostname: str
    alive: bool
    method: DiscoveryMethod
    address: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "subdomain": self.hostname,
            "alive": self.alive,
            "ip": self.address,
            "method": self.method.value,
            "error": self.error,
        }


@dataclass
class DiscoveryReport:
    """Everything a discovery run produced.

    ``method_counts`` counts verified subdomains per attributed technique;
    ``discovered_from`` counts raw candidates per technique before
    verification, plus ``total_unique``.
    """

    domain: str
    mode: str
    subdomains: list[DiscoveryRecord]
    total_checked: int
    method_counts: dict[str, int]
    discovered_from: dict[str, int]
    scan_time_ms: int
    scanned_at: datetime
    errors: list[str] = field(default_factory=list)

    @property
    def total_found(self) -> int:
        return len(self.subdomains)

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain": self.domain,
            "mode": self.mode,
            "subdomains": [record.to_dict() for record in self.subdomains],
            "summary": {
                "total_checked": self.total_checked,
                "total_found": self.total_found,
                "method_counts": dict(self.method_counts),
            },
            "discovered_from": dict(self.discovered_from),
            "scan_time_ms": self.scan_time_ms,
            "scanned_at": self.scanned_at.isoformat(),
            "errors": list(self.errors),
        }


# ── Deep scan ────────────────────────────────────────────────────────────────

class ModuleName(str, Enum):
    """Sub-scans that make up a deep scan."""

    SECURITY_HEADERS = "security_headers"
    API_KEYS_AND_LEAKS = "api_keys_and_leaks"
    DATABASE_CONFIG = "database_config"
    SUBDOMAINS = "subdomains"
    AUTHENTICATED = "authenticated"


class ModuleErrorKind(str, Enum):
    TIMEOUT = "timeout"
    UPSTREAM_FAILURE = "upstream_failure"
    NETWORK_FAILURE = "network_failure"
    UNEXPECTED = "unexpected"
    NOT_COMPLETED = "not_completed"


@dataclass(frozen=True)
class ModuleError:
    kind: str
    message: str


@dataclass
class ModuleReport:
    """Outcome of one sub-scan: exactly one of ``result`` / ``error`` is set."""

    name: ModuleName
    result: Optional[dict[str, Any]] = None
    error: Optional[ModuleError] = None
    duration_ms: int = 0

    def __post_init__(self) -> None:
        if (self.result is None) == (self.error is None):
            raise ValueError("ModuleReport needs exactly one of result or error")

    @classmethod
    def succeeded(cls, name: ModuleName, result: dict[str, Any], duration_ms: int = 0) -> "ModuleReport":
        return cls(name=name, result=result, duration_ms=duration_ms)

    @classmethod
    def failed(cls, name: ModuleName, kind: str, message: str, duration_ms: int = 0) -> "ModuleReport":
        return cls(name=name, error=ModuleError(kind=kind, message=message), duration_ms=duration_ms)

    @property
    def usable(self) -> bool:
        """``True`` when the module produced a numeric score."""
        return self.result is not None and isinstance(self.result.get("score"), (int, float))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name.value,
            "result": self.result,
            "error": asdict(self.error) if self.error else None,
            "duration_ms": self.duration_ms,
        }


@dataclass
class RiskTally:
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0

    def add(self, severity: str, count: int = 1) -> None:
        setattr(self, severity, getattr(self, severity) + count)

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class AggregateReport:
    """Final deep-scan report, persisted once when the scan finishes."""

    modules: list[ModuleReport]
    score: int
    tally: RiskTally
    started_at: datetime
    completed_at: datetime
    duration_ms: int

    def module(self, name: ModuleName) -> Optional[ModuleReport]:
        return next((report for report in self.modules if report.name is name), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "modules": {report.name.value: report.to_dict() for report in self.modules},
            "overall_score": self.score,
            "risk_summary": self.tally.to_dict(),
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration_ms": self.duration_ms,
        }
