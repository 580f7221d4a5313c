"""
DNS probes built on :mod:`dns.asyncresolver`.

Negative answers (NXDOMAIN, no answer, no nameservers) are "nothing here" and
return an empty list; a resolver timeout raises :class:`ProbeTimeout` so the
executor can count it separately.
"""

from __future__ import annotations

import functools
import logging
from typing import Optional, Sequence

import dns.asyncresolver
import dns.exception
import dns.resolver

from deepscan.core.errors import NetworkFailure, ProbeTimeout
from deepscan.probes.base import ProbeOutcome, first_success

logger = logging.getLogger(__name__)

_NEGATIVE_ANSWERS = (
    dns.resolver.NXDOMAIN,
    dns.resolver.NoAnswer,
    dns.resolver.NoNameservers,
)


def build_resolver(timeout: float) -> dns.asyncresolver.Resolver:
    """Return a resolver whose every query is bounded by *timeout* seconds."""
    resolver = dns.asyncresolver.Resolver()
    resolver.timeout = timeout
    resolver.lifetime = timeout
    return resolver


def _rdata_to_text(rdtype: str, rdata: object) -> str:
    if rdtype in ("A", "AAAA"):
        return rdata.address  # type: ignore[attr-defined]
    if rdtype == "MX":
        return rdata.exchange.to_text().rstrip(".").lower()  # type: ignore[attr-defined]
    if rdtype in ("CNAME", "NS", "PTR"):
        return rdata.target.to_text().rstrip(".").lower()  # type: ignore[attr-defined]
    if rdtype == "TXT":
        return b"".join(rdata.strings).decode("utf-8", errors="replace")  # type: ignore[attr-defined]
    return rdata.to_text()  # type: ignore[attr-defined]


async def resolve_record(
    resolver: dns.asyncresolver.Resolver,
    hostname: str,
    rdtype: str,
) -> list[str]:
    """Query a single record type for *hostname*.

    Args:
        resolver: Resolver built by :func:`build_resolver`.
        hostname: Fully qualified name to look up.
        rdtype:   Record type, e.g. ``"A"``, ``"MX"`` or ``"TXT"``.

    Returns:
        The answers as text; empty when the name or record does not exist.

    Raises:
        ProbeTimeout:   When the resolver lifetime is exceeded.
        NetworkFailure: On any other resolver error.
    """
    try:
        answer = await resolver.resolve(hostname, rdtype)
    except _NEGATIVE_ANSWERS:
        return []
    except dns.exception.Timeout as exc:
        raise ProbeTimeout(f"{rdtype} lookup for {hostname} timed out") from exc
    except dns.exception.DNSException as exc:
        raise NetworkFailure(f"{rdtype} lookup for {hostname} failed: {exc}") from exc
    return [_rdata_to_text(rdtype, rdata) for rdata in answer]


async def reverse_lookup(resolver: dns.asyncresolver.Resolver, address: str) -> list[str]:
    """Return the PTR names of *address* (empty when there are none)."""
    try:
        answer = await resolver.resolve_address(address)
    except _NEGATIVE_ANSWERS:
        return []
    except dns.exception.Timeout as exc:
        raise ProbeTimeout(f"PTR lookup for {address} timed out") from exc
    except (dns.exception.DNSException, ValueError) as exc:
        raise NetworkFailure(f"PTR lookup for {address} failed: {exc}") from exc
    return [_rdata_to_text("PTR", rdata) for rdata in answer]


async def resolve_with_fallback(
    resolver: dns.asyncresolver.Resolver,
    hostname: str,
    rdtypes: Sequence[str] = ("A", "AAAA"),
) -> ProbeOutcome:
    """Resolve *hostname* through an ordered record-type chain.

    ``("A", "AAAA", "CNAME")`` means "A record, else AAAA, else CNAME".
    On success the payload is ``(rdtype, answers)``.
    """

    async def _lookup(rdtype: str) -> Optional[tuple[str, list[str]]]:
        answers = await resolve_record(resolver, hostname, rdtype)
        return (rdtype, answers) if answers else None

    return await first_success([functools.partial(_lookup, rdtype) for rdtype in rdtypes])


async def first_address(resolver: dns.asyncresolver.Resolver, hostname: str) -> Optional[str]:
    """Return the first IPv4 address of *hostname*, or ``None``."""
    addresses = await resolve_record(resolver, hostname, "A")
    return addresses[0] if addresses else None
