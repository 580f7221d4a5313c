"""
Tests for the subdomain finder endpoint.

Covers the subscription gate, the internal service-key path, domain
validation and the camelCase response shape of
``POST /api/v1/subdomain-finder``.  Discovery itself is mocked.
"""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from deepscan.engine.results import DiscoveryMethod, DiscoveryRecord, DiscoveryReport
from deepscan.models.profile import Profile


def _report(domain: str = "acme-corp.de", mode: str = "optimized") -> DiscoveryReport:
    return DiscoveryReport(
        domain=domain,
        mode=mode,
        subdomains=[
            DiscoveryRecord("api.acme-corp.de", True, DiscoveryMethod.PORT_SCAN, address="185.23.45.11"),
            DiscoveryRecord(
                "legacy.acme-corp.de",
                True,
                DiscoveryMethod.WORDLIST,
                error="HTTPS not available, HTTP works",
            ),
        ],
        total_checked=12,
        method_counts={"port_scan": 1, "wordlist": 1},
        discovered_from={"port_scan": 1, "wordlist": 11, "total_unique": 12},
        scan_time_ms=4321,
        scanned_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


@pytest.mark.asyncio
async def test_finder_requires_session(client: AsyncClient) -> None:
    """Without an Authorization header the finder returns 401."""
    response = await client.post("/api/v1/subdomain-finder", json={"domain": "acme-corp.de"})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_finder_unknown_session(client: AsyncClient) -> None:
    """A session token that matches no profile returns 401."""
    response = await client.post(
        "/api/v1/subdomain-finder",
        json={"domain": "acme-corp.de"},
        headers={"Authorization": "Bearer nobody"},
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_finder_rejects_free_plan(client: AsyncClient, free_profile: Profile) -> None:
    """Free-plan profiles get 403."""
    with patch("deepscan.api.v1.subdomains.find_subdomains", new_callable=AsyncMock) as mock_find:
        response = await client.post(
            "/api/v1/subdomain-finder",
            json={"domain": "acme-corp.de"},
            headers={"Authorization": f"Bearer {free_profile.session_token}"},
        )

    assert response.status_code == 403
    mock_find.assert_not_awaited()


@pytest.mark.asyncio
async def test_finder_invalid_domain(client: AsyncClient, paid_profile: Profile) -> None:
    """A malformed domain is rejected with 422 before any discovery starts."""
    response = await client.post(
        "/api/v1/subdomain-finder",
        json={"domain": "not_a_valid_domain!!!"},
        headers={"Authorization": f"Bearer {paid_profile.session_token}"},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_finder_invalid_mode(client: AsyncClient, paid_profile: Profile) -> None:
    response = await client.post(
        "/api/v1/subdomain-finder",
        json={"domain": "acme-corp.de", "mode": "thorough"},
        headers={"Authorization": f"Bearer {paid_profile.session_token}"},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_finder_paid_profile_camel_case(client: AsyncClient, paid_profile: Profile) -> None:
    """A paid profile gets the report in camelCase, with the URL reduced to its domain."""
    with patch(
        "deepscan.api.v1.subdomains.find_subdomains",
        new_callable=AsyncMock,
        return_value=_report(),
    ) as mock_find:
        response = await client.post(
            "/api/v1/subdomain-finder",
            json={"domain": "https://www.Acme-Corp.de/login"},
            headers={"Authorization": f"Bearer {paid_profile.session_token}"},
        )

    assert response.status_code == 200, response.text
    mock_find.assert_awaited_once_with("acme-corp.de", "optimized")

    data = response.json()
    assert data["summary"] == {
        "totalChecked": 12,
        "totalFound": 2,
        "methodCounts": {"port_scan": 1, "wordlist": 1},
    }
    assert data["scanTimeMs"] == 4321
    assert data["discoveredFrom"]["total_unique"] == 12
    first = data["subdomains"][0]
    assert first == {
        "subdomain": "api.acme-corp.de",
        "alive": True,
        "ip": "185.23.45.11",
        "method": "port_scan",
        "error": None,
    }
    assert data["subdomains"][1]["error"] == "HTTPS not available, HTTP works"


@pytest.mark.asyncio
async def test_finder_internal_call_uses_service_key(
    client: AsyncClient,
    service_headers: dict[str, str],
) -> None:
    """``deepScanRequest: true`` is authorised by the service key, not a profile."""
    with patch(
        "deepscan.api.v1.subdomains.find_subdomains",
        new_callable=AsyncMock,
        return_value=_report(mode="exhaustive"),
    ) as mock_find:
        response = await client.post(
            "/api/v1/subdomain-finder",
            json={"domain": "acme-corp.de", "mode": "exhaustive", "deepScanRequest": True},
            headers=service_headers,
        )

    assert response.status_code == 200, response.text
    mock_find.assert_awaited_once_with("acme-corp.de", "exhaustive")
    assert response.json()["mode"] == "exhaustive"


@pytest.mark.asyncio
async def test_finder_internal_call_rejects_session_token(
    client: AsyncClient,
    paid_profile: Profile,
) -> None:
    """An internal call carrying a customer session instead of the service key gets 401."""
    response = await client.post(
        "/api/v1/subdomain-finder",
        json={"domain": "acme-corp.de", "deepScanRequest": True},
        headers={"Authorization": f"Bearer {paid_profile.session_token}"},
    )

    assert response.status_code == 401
