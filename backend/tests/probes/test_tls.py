"""
Tests for SAN extraction from DER certificates.
"""

from __future__ import annotations

import datetime

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from deepscan.probes.tls import extract_san_names


def _self_signed(san_names: list[str] | None) -> bytes:
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "acme.io")])
    now = datetime.datetime.now(datetime.timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=1))
    )
    if san_names is not None:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName(value) for value in san_names]),
            critical=False,
        )
    cert = builder.sign(key, hashes.SHA256())
    return cert.public_bytes(serialization.Encoding.DER)


def test_extracts_dns_names_in_order() -> None:
    cert_der = _self_signed(["acme.io", "WWW.acme.io", "*.cdn.acme.io"])

    assert extract_san_names(cert_der) == ["acme.io", "www.acme.io", "*.cdn.acme.io"]


def test_certificate_without_san() -> None:
    assert extract_san_names(_self_signed(None)) == []


def test_garbage_bytes() -> None:
    assert extract_san_names(b"definitely not a certificate") == []
