"""
HTTP probes: existence checks and authenticated status probes.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Optional

import httpx

from deepscan.probes.base import ProbeOutcome, first_success

logger = logging.getLogger(__name__)

HTTP_FALLBACK_NOTE: str = "HTTPS not available, HTTP works"


def build_client(
    timeout: float,
    user_agent: str,
    max_redirects: int = 1,
) -> httpx.AsyncClient:
    """Return an ``AsyncClient`` suited to probing arbitrary hosts.

    Certificate verification is disabled because existence, not trust, is
    being measured.
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        follow_redirects=max_redirects > 0,
        max_redirects=max_redirects,
        verify=False,
        headers={"User-Agent": user_agent},
    )


async def head_status(client: httpx.AsyncClient, url: str) -> dict[str, Any]:
    """Send ``HEAD url`` and report whatever status comes back.

    Any HTTP status, 4xx and 5xx included, proves that something answers.
    A redirect chain longer than the client allows also counts.

    Raises:
        httpx.TimeoutException: When the request times out.
        httpx.TransportError:   When nothing answers.
    """
    try:
        response = await client.head(url)
    except httpx.TooManyRedirects:
        return {"url": url, "status_code": None, "redirected": True}
    return {"url": url, "status_code": response.status_code, "redirected": bool(response.history)}


async def check_existence(client: httpx.AsyncClient, hostname: str) -> ProbeOutcome:
    """Decide whether *hostname* serves HTTP, trying HTTPS then plain HTTP.

    On success the payload is the :func:`head_status` dict; when only the
    HTTP fallback answered it carries ``note`` set to
    :data:`HTTP_FALLBACK_NOTE`.
    """
    outcome = await first_success([
        functools.partial(head_status, client, f"https://{hostname}"),
        functools.partial(head_status, client, f"http://{hostname}"),
    ])
    if outcome.ok and outcome.link == 1:
        outcome.payload["note"] = HTTP_FALLBACK_NOTE
    return outcome


async def fetch_status(
    client: httpx.AsyncClient,
    url: str,
    bearer_token: Optional[str] = None,
) -> int:
    """``GET url`` (optionally with a bearer credential) and return the status code."""
    headers = {"Authorization": f"Bearer {bearer_token}"} if bearer_token else None
    response = await client.get(url, headers=headers)
    return response.status_code
