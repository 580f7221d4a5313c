"""
Clients for the external scan services the deep scan delegates to.

* The **light scan** checks security headers and looks for leaked keys in the
  site's JavaScript.  One call yields two module results.
* The **database-configuration scan** inspects the site's hosted database
  for tables readable without authentication.

Both clients raise :class:`UpstreamFailure` for error statuses and bodies
they cannot use; the coordinator turns that into a module error.  Time
limits are applied by the coordinator.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from deepscan.config import Settings, get_settings
from deepscan.core.errors import UpstreamFailure
from deepscan.core.logging import get_logger
from deepscan.engine.scoring import round_half_up

logger = get_logger(__name__)

HEADER_RECOMMENDATIONS: dict[str, str] = {
    "strict-transport-security": "Add HSTS header to force HTTPS connections",
    "content-security-policy": "Implement CSP to prevent XSS attacks",
    "x-frame-options": "Add X-Frame-Options to prevent clickjacking",
    "x-content-type-options": "Add X-Content-Type-Options to prevent MIME sniffing",
    "referrer-policy": "Control referrer information with Referrer-Policy",
    "permissions-policy": "Restrict browser features with Permissions-Policy",
}

SENSITIVE_COLUMN_HINTS: tuple[str, ...] = ("password", "email", "token", "key", "secret")
_MAX_FULL_COLUMNS = 20
_SAMPLE_COLUMNS = 5


# ── Light scan ───────────────────────────────────────────────────────────────

def headers_result(headers: dict[str, Any]) -> dict[str, Any]:
    """Build the ``security_headers`` module result from the light scan's headers block."""
    present = list(headers.get("present") or [])
    missing = list(headers.get("missing") or [])
    total = len(present) + len(missing)
    return {
        "present": present,
        "missing": missing,
        "score": round_half_up(len(present) / total * 100) if total else 0,
        "recommendations": [
            HEADER_RECOMMENDATIONS.get(header.lower(), f"Add {header} header for enhanced security")
            for header in missing
        ],
    }


def leaks_result(body: dict[str, Any]) -> dict[str, Any]:
    """Build the ``api_keys_and_leaks`` module result from a light-scan body."""
    leaks: list[dict[str, Any]] = list(body.get("leaks") or [])
    severities = [str(leak.get("severity", "")).lower() for leak in leaks]
    return {
        "leaks": leaks,
        "leaks_found": len(leaks),
        "js_files_scanned": int(body.get("jsFilesScanned") or 0),
        "score": body.get("score") or 0,
        "auth_pages": body.get("authPages") or {},
        "analysis": {
            "critical_leaks": severities.count("critical"),
            "high_leaks": severities.count("high") + severities.count("warning"),
            "medium_leaks": severities.count("medium"),
            "low_leaks": severities.count("low") + severities.count("info"),
            "total_leaks": len(leaks),
            "most_critical": next((leak for leak in leaks if leak.get("severity") == "critical"), None),
            "leak_types": list(dict.fromkeys(leak.get("type") for leak in leaks if leak.get("type"))),
        },
    }


# ── Database scan ────────────────────────────────────────────────────────────

def compact_table(table: dict[str, Any]) -> dict[str, Any]:
    """Shrink tables with very wide schemas before they are stored."""
    columns = table.get("columns")
    if isinstance(columns, list) and len(columns) > _MAX_FULL_COLUMNS:
        names = [str(column.get("name", "") if isinstance(column, dict) else column).lower()
                 for column in columns]
        columns = {
            "total_columns": len(columns),
            "sample_columns": columns[:_SAMPLE_COLUMNS],
            "has_sensitive_columns": any(
                hint in name for name in names for hint in SENSITIVE_COLUMN_HINTS
            ),
        }
    return {
        "name": table.get("name"),
        "columns": columns,
        "is_public": bool(table.get("isPublic")),
        "rls_enabled": table.get("rlsEnabled"),
        "error_message": table.get("errorMessage"),
    }


def database_result(body: dict[str, Any]) -> dict[str, Any]:
    """Build the ``database_config`` module result from a detected database."""
    summary = body.get("summary") or {}
    tables = [compact_table(table) for table in body.get("tables") or []]
    total = int(summary.get("totalTables") or 0)
    public = int(summary.get("publicTables") or 0)
    protected = int(summary.get("protectedTables") or 0)
    return {
        "detected": True,
        "tables": tables,
        "total_tables": total,
        "public_tables": public,
        "protected_tables": protected,
        "compacted": any(isinstance(table["columns"], dict) for table in tables),
        "score": round_half_up(protected / total * 100) if total else 100,
    }


NOT_DETECTED: dict[str, Any] = {
    "detected": False,
    "message": "No database credentials found",
    "score": None,
}


# ── Client ───────────────────────────────────────────────────────────────────

class CollaboratorClient:
    """HTTP client for the light-scan and database-scan services.

    Args:
        settings:  Application settings; defaults to :func:`get_settings`.
        transport: Optional ``httpx`` transport, used by tests.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            transport=self._transport,
            headers={"User-Agent": self.settings.USER_AGENT},
        )

    async def light_scan(self, url: str) -> tuple[dict[str, Any], dict[str, Any]]:
        """Run the light scan of *url*.

        Returns:
            ``(security_headers result, api_keys_and_leaks result)``.

        Raises:
            UpstreamFailure: On a non-2xx status or a non-object body.
        """
        async with self._client(self.settings.LIGHT_SCAN_TIMEOUT_SECONDS) as client:
            response = await client.post(
                self.settings.light_scan_url,
                json={"url": url},
                headers={"X-Internal-Scan": "true"},
            )

        if response.status_code >= 400:
            raise UpstreamFailure(
                f"Light scan returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        body = _json_object(response, "Light scan")
        logger.info(
            "Light scan returned %d leaks",
            len(body.get("leaks") or []),
            extra={"action": "light_scan", "target": url},
        )
        return headers_result(body.get("headers") or {}), leaks_result(body)

    async def database_scan(self, domain: str) -> dict[str, Any]:
        """Run the database-configuration scan of *domain*.

        A ``credentials_not_found`` error body means no database was found;
        that is a valid, unscored result rather than a failure.

        Raises:
            UpstreamFailure: On any other error status or an unusable body.
        """
        async with self._client(self.settings.DB_SCAN_TIMEOUT_SECONDS) as client:
            response = await client.post(
                self.settings.db_scan_url,
                json={"domain": domain},
                headers={"Authorization": f"Bearer {self.settings.SERVICE_ROLE_KEY}"},
            )

        if response.status_code >= 400:
            try:
                error_body = response.json()
            except ValueError:
                error_body = {}
            if isinstance(error_body, dict) and error_body.get("error") == "credentials_not_found":
                logger.info(
                    "No database detected",
                    extra={"action": "database_scan", "target": domain},
                )
                return dict(NOT_DETECTED)
            message = error_body.get("message") if isinstance(error_body, dict) else None
            raise UpstreamFailure(
                f"Database scan returned HTTP {response.status_code}: {message or response.reason_phrase}",
                status_code=response.status_code,
            )

        return database_result(_json_object(response, "Database scan"))


def _json_object(response: httpx.Response, service: str) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError as exc:
        raise UpstreamFailure(f"{service} returned a non-JSON body") from exc
    if not isinstance(body, dict):
        raise UpstreamFailure(f"{service} returned an unexpected payload")
    return body
