"""
Tests for the PDF report renderer.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from deepscan.config import Settings
from deepscan.models.scan_request import DeepScanRequest
from deepscan.reports.renderer import build_pdf, render_report

REPORT = {
    "overall_score": 48,
    "risk_summary": {"critical": 3, "high": 0, "medium": 0, "low": 1},
    "completed_at": "2026-10-18T09:30:00+00:00",
    "modules": {
        "security_headers": {
            "result": {
                "present": ["x-frame-options"],
                "missing": ["content-security-policy"],
                "recommendations": ["Implement CSP to prevent XSS attacks"],
                "score": 50,
            },
            "error": None,
        },
        "api_keys_and_leaks": {"result": {"leaks_found": 1, "js_files_scanned": 9}, "error": None},
        "database_config": {"result": {"detected": False}, "error": None},
        "subdomains": {"result": None, "error": {"kind": "timeout", "message": "exceeded 60s"}},
    },
}


def test_build_pdf_produces_a_document() -> None:
    pdf = build_pdf("https://acme-corp.de/<script>", REPORT)

    assert pdf.startswith(b"%PDF")
    assert len(pdf) > 1000


def test_build_pdf_with_empty_report() -> None:
    assert build_pdf("https://acme-corp.de", {}).startswith(b"%PDF")


@pytest.mark.asyncio
async def test_render_report_writes_file_and_records_url(
    tmp_path: Path,
    session_factory: async_sessionmaker[AsyncSession],
    db_session: AsyncSession,
    processing_request: DeepScanRequest,
) -> None:
    settings = Settings(
        SERVICE_ROLE_KEY="test-service-key",
        REPORTS_DIR=str(tmp_path / "reports"),
        REPORTS_BASE_URL="http://files.test/reports/",
    )

    with patch("deepscan.reports.renderer.get_settings", return_value=settings):
        pdf_url = await render_report(
            processing_request.id, processing_request.url, REPORT, session_factory,
        )

    assert pdf_url == f"http://files.test/reports/{processing_request.id}.pdf"
    written = tmp_path / "reports" / f"{processing_request.id}.pdf"
    assert written.read_bytes().startswith(b"%PDF")

    await db_session.refresh(processing_request)
    assert processing_request.pdf_url == pdf_url
