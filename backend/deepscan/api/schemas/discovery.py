"""
Pydantic v2 schemas for the subdomain finder.

Responses are serialised in camelCase (``totalChecked``, ``scanTimeMs``,
...) for the browser client; requests accept either spelling.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from deepscan.core.security import extract_domain
from deepscan.engine.results import DiscoveryReport

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class SubdomainFinderRequest(BaseModel):
    """Payload for ``POST /api/v1/subdomain-finder``.

    Attributes:
        domain: Domain or URL; scheme, ``www.`` and path are stripped.
        mode: ``optimized`` (default, ~10 s) or ``exhaustive`` (~45 s).
        deep_scan_request: Internal call from the deep-scan pipeline;
            authenticated with the service credential instead of a session.
    """

    model_config = _CAMEL

    domain: str = Field(..., min_length=3, max_length=2048, examples=["example.com"])
    mode: Literal["optimized", "exhaustive"] = "optimized"
    deep_scan_request: bool = False

    @field_validator("domain", mode="after")
    @classmethod
    def normalise_domain(cls, value: str) -> str:
        """Reduce a URL or hostname to a validated root domain."""
        return extract_domain(value)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class SubdomainRecordOut(BaseModel):
    model_config = _CAMEL

    subdomain: str
    alive: bool
    ip: Optional[str] = None
    method: str
    error: Optional[str] = None


class DiscoverySummaryOut(BaseModel):
    model_config = _CAMEL

    total_checked: int
    total_found: int
    method_counts: dict[str, int]


class SubdomainFinderResponse(BaseModel):
    """Discovery report as returned to the browser."""

    model_config = _CAMEL

    domain: str
    mode: str
    subdomains: list[SubdomainRecordOut]
    summary: DiscoverySummaryOut
    discovered_from: dict[str, int]
    scan_time_ms: int
    scanned_at: datetime
    errors: list[str] = Field(default_factory=list)

    @classmethod
    def from_report(cls, report: DiscoveryReport) -> "SubdomainFinderResponse":
        return cls(
            domain=report.domain,
            mode=report.mode,
            subdomains=[SubdomainRecordOut(**record.to_dict()) for record in report.subdomains],
            summary=DiscoverySummaryOut(
                total_checked=report.total_checked,
                total_found=report.total_found,
                method_counts=report.method_counts,
            ),
            discovered_from=report.discovered_from,
            scan_time_ms=report.scan_time_ms,
            scanned_at=report.scanned_at,
            errors=report.errors,
        )
