"""
Tests for the subdomain discovery engine.

Techniques and the HTTP existence check are replaced by fakes, so these
tests exercise merging, attribution priority, envelopes and the
verification pass without touching the network.
"""

from __future__ import annotations

import asyncio
import dataclasses
import time
from unittest.mock import AsyncMock, patch

import pytest

from deepscan.engine.discovery import DiscoveryEngine, get_profile
from deepscan.engine.results import DiscoveryMethod
from deepscan.modules.base import (
    EXHAUSTIVE,
    OPTIMIZED,
    BaseDiscoveryTechnique,
    DiscoveryProfile,
    TechniqueResult,
)
from deepscan.probes.base import ProbeOutcome
from deepscan.probes.web import HTTP_FALLBACK_NOTE

FAST_PROFILE = dataclasses.replace(OPTIMIZED, budget=2.0, verify_budget=1.0, verify_timeout=0.5)


class _StaticTechnique(BaseDiscoveryTechnique):
    """Returns a canned result."""

    def __init__(self, method: DiscoveryMethod, names: list[str], confirmed: dict[str, str] | None = None,
                 addresses: dict[str, str] | None = None) -> None:
        self.method = method
        self._names = names
        self._confirmed = confirmed or {}
        self._addresses = addresses or {}

    def envelope(self, profile: DiscoveryProfile) -> float:
        return 1.0

    async def execute(self, domain: str, profile: DiscoveryProfile) -> TechniqueResult:
        result = TechniqueResult(method=self.method)
        for name in self._names:
            result.add(name, self._addresses.get(name))
        result.confirmed.update(self._confirmed)
        return result


class _HangingTechnique(BaseDiscoveryTechnique):
    method = DiscoveryMethod.CERTIFICATE_TRANSPARENCY

    def envelope(self, profile: DiscoveryProfile) -> float:
        return 60.0

    async def execute(self, domain: str, profile: DiscoveryProfile) -> TechniqueResult:
        await asyncio.sleep(60)
        return TechniqueResult(method=self.method)


class _BrokenTechnique(BaseDiscoveryTechnique):
    method = DiscoveryMethod.SAN_ANALYSIS

    def envelope(self, profile: DiscoveryProfile) -> float:
        return 1.0

    async def execute(self, domain: str, profile: DiscoveryProfile) -> TechniqueResult:
        raise RuntimeError("handshake exploded")


def _existence(alive: dict[str, ProbeOutcome]):
    async def _check(client, hostname):
        return alive.get(hostname, ProbeOutcome.failure("connection refused"))
    return _check


def _head(hostname: str, note: str | None = None) -> ProbeOutcome:
    payload = {"url": f"https://{hostname}", "status_code": 200, "redirected": False}
    if note:
        payload["note"] = note
    return ProbeOutcome.success(payload)


@pytest.mark.asyncio
async def test_merge_deduplicates_and_prefers_higher_priority() -> None:
    """A hostname found by several techniques is reported once, credited to the best one."""
    techniques = [
        _StaticTechnique(DiscoveryMethod.SAN_ANALYSIS, ["api.acme.io", "www.acme.io"]),
        _StaticTechnique(DiscoveryMethod.CERTIFICATE_TRANSPARENCY, ["API.acme.io", "*.shop.acme.io"]),
        _StaticTechnique(
            DiscoveryMethod.PORT_SCAN,
            ["api.acme.io"],
            confirmed={"api.acme.io": "port 443 open"},
            addresses={"api.acme.io": "185.23.45.11"},
        ),
    ]
    alive = {
        "api.acme.io": _head("api.acme.io"),
        "www.acme.io": _head("www.acme.io"),
        "shop.acme.io": _head("shop.acme.io", note=HTTP_FALLBACK_NOTE),
    }

    with patch("deepscan.engine.discovery.check_existence", side_effect=_existence(alive)):
        report = await DiscoveryEngine(FAST_PROFILE, techniques).discover("acme.io")

    by_name = {record.hostname: record for record in report.subdomains}
    assert sorted(by_name) == ["api.acme.io", "shop.acme.io", "www.acme.io"]
    assert by_name["api.acme.io"].method is DiscoveryMethod.PORT_SCAN
    assert by_name["api.acme.io"].address == "185.23.45.11"
    assert by_name["shop.acme.io"].method is DiscoveryMethod.CERTIFICATE_TRANSPARENCY
    assert by_name["shop.acme.io"].error == HTTP_FALLBACK_NOTE
    assert by_name["www.acme.io"].method is DiscoveryMethod.SAN_ANALYSIS

    assert report.total_checked == 3
    assert report.total_found == 3
    assert report.discovered_from["total_unique"] == 3
    assert report.discovered_from["san_analysis"] == 2
    assert report.method_counts == {
        "port_scan": 1,
        "dns_enumeration": 0,
        "certificate_transparency": 1,
        "wordlist": 0,
        "san_analysis": 1,
    }


@pytest.mark.asyncio
async def test_unverified_candidates_are_dropped() -> None:
    techniques = [_StaticTechnique(DiscoveryMethod.WORDLIST, ["dev.acme.io", "www.acme.io"])]

    with patch(
        "deepscan.engine.discovery.check_existence",
        side_effect=_existence({"www.acme.io": _head("www.acme.io")}),
    ):
        report = await DiscoveryEngine(FAST_PROFILE, techniques).discover("acme.io")

    assert [record.hostname for record in report.subdomains] == ["www.acme.io"]
    assert report.total_checked == 2


@pytest.mark.asyncio
async def test_port_confirmed_host_survives_failed_head() -> None:
    """A host with an open port is live even when HEAD fails; the failure is noted."""
    techniques = [
        _StaticTechnique(DiscoveryMethod.PORT_SCAN, ["mail.acme.io"], confirmed={"mail.acme.io": "port 8443 open"}),
    ]

    with patch("deepscan.engine.discovery.check_existence", side_effect=_existence({})):
        report = await DiscoveryEngine(FAST_PROFILE, techniques).discover("acme.io")

    assert len(report.subdomains) == 1
    record = report.subdomains[0]
    assert record.alive is True
    assert "port 8443 open" in record.error


@pytest.mark.asyncio
async def test_hanging_technique_is_cut_off_by_the_budget() -> None:
    """A technique that never returns costs at most the gathering budget."""
    techniques = [_HangingTechnique(), _StaticTechnique(DiscoveryMethod.WORDLIST, ["www.acme.io"])]

    start = time.monotonic()
    with patch(
        "deepscan.engine.discovery.check_existence",
        side_effect=_existence({"www.acme.io": _head("www.acme.io")}),
    ):
        report = await DiscoveryEngine(FAST_PROFILE, techniques).discover("acme.io")
    elapsed = time.monotonic() - start

    assert elapsed < FAST_PROFILE.budget + 0.5
    assert [record.hostname for record in report.subdomains] == ["www.acme.io"]
    assert any("certificate_transparency exceeded" in error for error in report.errors)


@pytest.mark.asyncio
async def test_failing_technique_contributes_only_an_error() -> None:
    techniques = [_BrokenTechnique(), _StaticTechnique(DiscoveryMethod.DNS_ENUMERATION, ["ns1.acme.io"])]

    with patch(
        "deepscan.engine.discovery.check_existence",
        side_effect=_existence({"ns1.acme.io": _head("ns1.acme.io")}),
    ):
        report = await DiscoveryEngine(FAST_PROFILE, techniques).discover("acme.io")

    assert report.total_found == 1
    assert len(report.errors) == 1
    assert "san_analysis failed" in report.errors[0]
    assert "handshake exploded" in report.errors[0]


@pytest.mark.asyncio
async def test_no_candidates_yields_empty_report() -> None:
    techniques = [_StaticTechnique(DiscoveryMethod.WORDLIST, [])]
    check = AsyncMock()

    with patch("deepscan.engine.discovery.check_existence", check):
        report = await DiscoveryEngine(FAST_PROFILE, techniques).discover("acme.io")

    assert report.subdomains == []
    assert report.total_checked == 0
    assert report.discovered_from["total_unique"] == 0
    check.assert_not_awaited()
    assert report.to_dict()["summary"] == {
        "total_checked": 0,
        "total_found": 0,
        "method_counts": {
            "port_scan": 0,
            "dns_enumeration": 0,
            "certificate_transparency": 0,
            "wordlist": 0,
            "san_analysis": 0,
        },
    }


def test_get_profile() -> None:
    assert get_profile(None) is OPTIMIZED
    assert get_profile("exhaustive") is EXHAUSTIVE
    with pytest.raises(ValueError):
        get_profile("thorough")


def test_profiles_keep_verification_inside_budget() -> None:
    for profile in (OPTIMIZED, EXHAUSTIVE):
        assert profile.verify_budget < profile.budget
        assert profile.port_envelope <= profile.budget - profile.verify_budget
