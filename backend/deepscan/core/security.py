"""
Security utilities: domain validation, URL normalisation, and credential checks.

Provides:
- ``validate_domain``     -- validates and normalises a domain name.
- ``extract_domain``      -- reduces a URL or bare host to its registrable host.
- ``is_subdomain_of``     -- tests whether a hostname is a true subdomain.
- ``parse_bearer_token``  -- pulls the token out of an ``Authorization`` header.
- ``verify_service_key``  -- constant-time comparison against the service key.
"""

from __future__ import annotations

import hmac
import re
from typing import Optional

from deepscan.core.errors import AuthorizationFailure, InputValidationError

# ── Constants ────────────────────────────────────────────────────────────────

# RFC 1035 compliant domain pattern: labels separated by dots, each label
# starts with a letter or digit, may contain letters/digits/hyphens, and ends
# with a letter or digit.  Total length must not exceed 253 characters.
_DOMAIN_LABEL_PATTERN: str = r"[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
_DOMAIN_REGEX: re.Pattern[str] = re.compile(
    rf"^(?:{_DOMAIN_LABEL_PATTERN}\.)+[a-zA-Z]{{2,63}}$"
)
_MAX_DOMAIN_LENGTH: int = 253

_SCHEME_REGEX: re.Pattern[str] = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


# ── Domain Validation ────────────────────────────────────────────────────────

def validate_domain(domain: str) -> str:
    """Validate and normalise a domain name.

    The domain is stripped of whitespace, lowered, and trailing dots are
    removed.  It is then checked against RFC 1035 constraints.

    Args:
        domain: The raw domain string supplied by the user.

    Returns:
        The cleaned, normalised domain string.

    Raises:
        InputValidationError: If the domain is empty, too long, or does not
            match the allowed pattern.
    """
    if not domain or not domain.strip():
        raise InputValidationError("Domain must not be empty.")

    cleaned: str = domain.strip().lower().rstrip(".")

    if len(cleaned) > _MAX_DOMAIN_LENGTH:
        raise InputValidationError(
            f"Domain exceeds maximum length of {_MAX_DOMAIN_LENGTH} characters."
        )

    if not _DOMAIN_REGEX.match(cleaned):
        raise InputValidationError(
            f"Invalid domain format: '{cleaned}'. "
            "A valid domain consists of labels separated by dots "
            "(e.g. 'example.com')."
        )

    return cleaned


def extract_domain(value: str) -> str:
    """Turn a URL or bare hostname into a validated root domain.

    Strips the scheme, any credentials, port, path, query and a leading
    ``www.`` label, e.g. ``https://www.Example.com:8443/login`` becomes
    ``example.com``.

    Raises:
        InputValidationError: If what remains is not a valid domain.
    """
    host = _SCHEME_REGEX.sub("", (value or "").strip())
    host = re.split(r"[/?#]", host, maxsplit=1)[0]
    host = host.rsplit("@", 1)[-1].split(":", 1)[0]
    host = host.lower().rstrip(".")
    if host.startswith("www."):
        host = host[4:]
    return validate_domain(host)


def normalize_hostname(hostname: str) -> str:
    """Lower-case a hostname and strip wildcard prefixes and trailing dots."""
    cleaned = hostname.strip().lower().rstrip(".")
    while cleaned.startswith("*."):
        cleaned = cleaned[2:]
    return cleaned


def is_subdomain_of(hostname: str, domain: str) -> bool:
    """Return ``True`` when *hostname* is a well-formed true subdomain of *domain*."""
    if not hostname.endswith(f".{domain}") or hostname == domain:
        return False
    return bool(_DOMAIN_REGEX.match(hostname)) and len(hostname) <= _MAX_DOMAIN_LENGTH


# ── Credentials ──────────────────────────────────────────────────────────────

def parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token of a ``Bearer`` authorization header, if any."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def verify_service_key(authorization: Optional[str], service_key: str) -> None:
    """Check an ``Authorization`` header against the service-role key.

    Raises:
        AuthorizationFailure: If the header is missing or carries another key.
    """
    token = parse_bearer_token(authorization)
    if token is None or not hmac.compare_digest(token.encode(), service_key.encode()):
        raise AuthorizationFailure("Invalid or missing service credential.")
