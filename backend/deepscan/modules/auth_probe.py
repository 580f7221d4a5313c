"""
Authenticated-access probe.

Replays a customer-supplied bearer credential against a handful of common
API endpoints of the target site and flags credentials that open more than
they should.  Runs only when a credential was supplied with the scan
request.
"""

from __future__ import annotations

import functools
import logging
import time
from typing import Any
from urllib.parse import urljoin

from deepscan.config import get_settings
from deepscan.engine.executor import ProbeExecutor
from deepscan.probes.web import build_client, fetch_status

logger = logging.getLogger(__name__)

PROBED_ENDPOINTS: list[str] = [
    "/api/user/profile",
    "/api/users",
    "/api/admin",
    "/rest/v1/profiles",
    "/rest/v1/users",
]

_REQUEST_TIMEOUT = 5.0
_EXCESSIVE_ACCESS_THRESHOLD = 3


def looks_like_jwt(token: str) -> bool:
    """A JWT has exactly three dot-separated, non-empty segments."""
    parts = token.split(".")
    return len(parts) == 3 and all(parts)


def permission_findings(endpoints: list[dict[str, Any]]) -> list[dict[str, str]]:
    """Derive findings from the per-endpoint probe results."""
    accessible = [entry for entry in endpoints if entry["accessible"]]
    findings: list[dict[str, str]] = []

    if len(accessible) > _EXCESSIVE_ACCESS_THRESHOLD:
        findings.append({
            "type": "excessive_access",
            "severity": "medium",
            "message": f"Credential grants access to {len(accessible)} endpoints - review permissions",
        })
    if any("admin" in entry["endpoint"] for entry in accessible):
        findings.append({
            "type": "admin_access",
            "severity": "high",
            "message": "Credential has admin-level access - ensure this is intended",
        })
    return findings


async def run_auth_probe(url: str, token: str) -> dict[str, Any]:
    """Probe *url* with *token* and return the ``authenticated`` module result.

    A malformed credential short-circuits with ``jwt_token_valid: False`` and
    no requests are made.  Endpoints that fail at the network level are
    recorded with status ``0``.
    """
    start: float = time.monotonic()
    if not looks_like_jwt(token):
        return {
            "jwt_token_valid": False,
            "message": "Invalid JWT token format",
            "tested_endpoints": [],
            "accessible_endpoints": 0,
            "findings": [],
        }

    settings = get_settings()
    urls = [urljoin(url, endpoint) for endpoint in PROBED_ENDPOINTS]
    executor = ProbeExecutor(len(urls), name=f"auth:{url}")

    async with build_client(_REQUEST_TIMEOUT, settings.USER_AGENT, max_redirects=0) as client:
        outcomes = await executor.run(
            [functools.partial(fetch_status, client, endpoint_url, token) for endpoint_url in urls],
            timeout=_REQUEST_TIMEOUT,
        )

    endpoints: list[dict[str, Any]] = []
    for endpoint, outcome in zip(PROBED_ENDPOINTS, outcomes):
        if outcome.ok:
            status = int(outcome.payload)
            endpoints.append({"endpoint": endpoint, "status": status, "accessible": 200 <= status < 300})
        else:
            endpoints.append({"endpoint": endpoint, "status": 0, "accessible": False, "error": outcome.reason})

    findings = permission_findings(endpoints)
    logger.info(
        "Authenticated probe: %d of %d endpoints accessible in %.1fs",
        sum(1 for entry in endpoints if entry["accessible"]),
        len(endpoints),
        time.monotonic() - start,
    )
    return {
        "jwt_token_valid": True,
        "tested_endpoints": endpoints,
        "accessible_endpoints": sum(1 for entry in endpoints if entry["accessible"]),
        "findings": findings,
    }
