"""
Certificate Transparency log queries (crt.sh and Cert Spotter).

Both functions return the raw names found in the logs; filtering to true
subdomains is the caller's job.  HTTP and decoding errors propagate.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from deepscan.core.errors import UpstreamFailure

logger = logging.getLogger(__name__)

CRTSH_URL: str = "https://crt.sh/"
CERTSPOTTER_URL: str = "https://api.certspotter.com/v1/issuances"


def _json_list(response: httpx.Response, provider: str) -> list[dict[str, Any]]:
    response.raise_for_status()
    try:
        body = response.json()
    except ValueError as exc:
        raise UpstreamFailure(f"{provider} returned a non-JSON body") from exc
    if not isinstance(body, list):
        raise UpstreamFailure(f"{provider} returned an unexpected payload")
    return body


async def query_crtsh(
    client: httpx.AsyncClient,
    domain: str,
    max_entries: Optional[int] = None,
) -> list[str]:
    """Query crt.sh for certificates matching ``%.{domain}``.

    Args:
        client:      Shared HTTP client.
        domain:      Root domain.
        max_entries: Only parse the first *max_entries* log entries.

    Returns:
        Every name of the ``name_value`` fields, one per line of the field.
    """
    response = await client.get(CRTSH_URL, params={"q": f"%.{domain}", "output": "json"})
    entries = _json_list(response, "crt.sh")
    if max_entries is not None:
        entries = entries[:max_entries]

    names: list[str] = []
    for entry in entries:
        name_value = entry.get("name_value") or ""
        names.extend(line.strip() for line in str(name_value).split("\n") if line.strip())
    return names


async def query_certspotter(client: httpx.AsyncClient, domain: str) -> list[str]:
    """Query Cert Spotter issuances for *domain* and its subdomains."""
    response = await client.get(
        CERTSPOTTER_URL,
        params={
            "domain": domain,
            "include_subdomains": "true",
            "expand": "dns_names",
        },
    )
    names: list[str] = []
    for issuance in _json_list(response, "Cert Spotter"):
        names.extend(str(name) for name in issuance.get("dns_names") or [])
    return names
