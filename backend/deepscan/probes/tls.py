"""
TLS handshake probe that reads Subject Alternative Names.

The handshake deliberately skips chain and hostname validation so that
self-signed and mismatched certificates still reveal their names.  With
``CERT_NONE`` the decoded ``getpeercert()`` dict is empty, so the DER form is
parsed with :mod:`cryptography`.
"""

from __future__ import annotations

import asyncio
import logging
import ssl

from cryptography import x509

from deepscan.core.errors import NetworkFailure, ProbeTimeout

logger = logging.getLogger(__name__)


def _permissive_context() -> ssl.SSLContext:
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


def extract_san_names(cert_der: bytes) -> list[str]:
    """Return the DNS names of the SAN extension of a DER certificate.

    Args:
        cert_der: Certificate bytes as returned by
            ``SSLObject.getpeercert(binary_form=True)``.

    Returns:
        Lower-cased DNS names in certificate order; empty when the
        certificate has no SAN extension or cannot be parsed.
    """
    try:
        cert = x509.load_der_x509_certificate(cert_der)
    except ValueError as exc:
        logger.debug("Unparseable certificate: %s", exc)
        return []
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return []
    return [name.lower() for name in san.value.get_values_for_type(x509.DNSName)]


async def fetch_certificate(host: str, port: int = 443, timeout: float = 2.0) -> bytes:
    """Complete a TLS handshake with *host* and return the peer certificate (DER).

    Raises:
        ProbeTimeout:   When the handshake does not finish within *timeout*.
        NetworkFailure: When the connection or handshake fails, or the
            server presents no certificate.
    """
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port, ssl=_permissive_context(), server_hostname=host),
            timeout=timeout,
        )
    except asyncio.TimeoutError as exc:
        raise ProbeTimeout(f"TLS handshake with {host}:{port} timed out") from exc
    except (ssl.SSLError, OSError) as exc:
        raise NetworkFailure(f"TLS handshake with {host}:{port} failed: {exc}") from exc

    try:
        ssl_object = writer.get_extra_info("ssl_object")
        cert_der = ssl_object.getpeercert(binary_form=True) if ssl_object else None
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except (ssl.SSLError, OSError):
            logger.debug("Unclean TLS close with %s", host)

    if not cert_der:
        raise NetworkFailure(f"{host}:{port} presented no certificate")
    return cert_der


async def fetch_san_names(host: str, port: int = 443, timeout: float = 2.0) -> list[str]:
    """Handshake with *host* and return the SAN DNS names of its certificate."""
    return extract_san_names(await fetch_certificate(host, port, timeout))
