"""
Exception hierarchy shared by the probes, the discovery engine, the deep-scan
coordinator and the HTTP layer.

Probe-level failures never escape the executor (they become
:class:`~deepscan.probes.base.ProbeOutcome` values); module-level failures are
turned into :class:`~deepscan.engine.results.ModuleError` descriptors via
:func:`error_kind`; validation and authorization errors are mapped to HTTP
4xx responses before any scan work starts.
"""

from __future__ import annotations

import asyncio

import httpx


class DeepScanError(Exception):
    """Base class for every error raised by DeepScan itself."""

    kind: str = "unexpected"


class ProbeTimeout(DeepScanError):
    """A probe or module did not finish within its time budget."""

    kind = "timeout"


class UpstreamFailure(DeepScanError):
    """A collaborator answered with an error status or an unusable body."""

    kind = "upstream_failure"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NetworkFailure(DeepScanError):
    """Connection refused, DNS failure, TLS failure, or reset."""

    kind = "network_failure"


class InputValidationError(DeepScanError, ValueError):
    """Malformed domain, URL or request body."""

    kind = "invalid_input"


class AuthorizationFailure(DeepScanError):
    """Missing or wrong credential, or a subscription tier that is not allowed."""

    kind = "unauthorized"


def error_kind(exc: BaseException) -> str:
    """Map any exception to the ``kind`` string stored in module reports."""
    if isinstance(exc, DeepScanError):
        return exc.kind
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError, httpx.TimeoutException)):
        return ProbeTimeout.kind
    if isinstance(exc, httpx.HTTPStatusError):
        return UpstreamFailure.kind
    if isinstance(exc, (httpx.TransportError, ConnectionError, OSError)):
        return NetworkFailure.kind
    return DeepScanError.kind
