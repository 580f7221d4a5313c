"""
PDF report renderer.

Builds a reportlab document from a serialised aggregate report, writes it to
``REPORTS_DIR/<request id>.pdf`` and records the public URL on the request.
Runs as a detached side effect of the coordinator; callers bound it with a
timeout and only log its failures.
"""

from __future__ import annotations

import asyncio
import io
import uuid
from pathlib import Path
from typing import Any, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from deepscan.config import get_settings
from deepscan.core.logging import get_logger
from deepscan.models.scan_request import DeepScanRequest

logger = get_logger(__name__)

_MODULE_TITLES: dict[str, str] = {
    "security_headers": "Security Headers",
    "api_keys_and_leaks": "API Keys & Leaks",
    "database_config": "Database Configuration",
    "subdomains": "Subdomains",
    "authenticated": "Authenticated Access",
}

_GRID_STYLE = [
    ("FONTSIZE", (0, 0), (-1, -1), 9),
    ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#cbd5e1")),
    ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ("LEFTPADDING", (0, 0), (-1, -1), 8),
    ("RIGHTPADDING", (0, 0), (-1, -1), 8),
]


def _module_summary(name: str, module: dict[str, Any]) -> str:
    error = module.get("error")
    if error:
        return f"Did not complete ({error.get('kind')}): {error.get('message')}"
    result = module.get("result") or {}
    if name == "security_headers":
        return f"{len(result.get('present') or [])} present, {len(result.get('missing') or [])} missing"
    if name == "api_keys_and_leaks":
        return f"{result.get('leaks_found', 0)} leaks in {result.get('js_files_scanned', 0)} JS files"
    if name == "database_config":
        if not result.get("detected"):
            return "No database detected"
        return f"{result.get('public_tables', 0)} of {result.get('total_tables', 0)} tables public"
    if name == "subdomains":
        return f"{result.get('total_found', 0)} found, {result.get('accessible_count', 0)} accessible"
    if name == "authenticated":
        return f"{result.get('accessible_endpoints', 0)} endpoints accessible with the credential"
    return "-"


def build_pdf(url: str, report: dict[str, Any]) -> bytes:
    """Render *report* (an ``AggregateReport.to_dict()``) for *url* as PDF bytes."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, topMargin=20 * mm, bottomMargin=20 * mm)
    styles = getSampleStyleSheet()
    elements: list[Any] = []

    title_style = ParagraphStyle(
        "Title", parent=styles["Title"], fontSize=18, textColor=colors.HexColor("#0891b2")
    )
    elements.append(Paragraph(f"Deep Scan Report: {escape(url)}", title_style))
    elements.append(Spacer(1, 10))

    tally = report.get("risk_summary") or {}
    summary_data = [
        ["Website", url],
        ["Overall Score", f"{report.get('overall_score', 0)} / 100"],
        ["Critical", str(tally.get("critical", 0))],
        ["High", str(tally.get("high", 0))],
        ["Medium", str(tally.get("medium", 0))],
        ["Low", str(tally.get("low", 0))],
        ["Completed", str(report.get("completed_at", "N/A"))],
    ]
    t = Table(summary_data, colWidths=[120, 350])
    t.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (0, -1), colors.HexColor("#1e293b")),
        ("TEXTCOLOR", (0, 0), (0, -1), colors.white),
        ("TEXTCOLOR", (1, 0), (1, -1), colors.HexColor("#334155")),
        *_GRID_STYLE,
    ]))
    elements.append(t)
    elements.append(Spacer(1, 15))

    modules: dict[str, Any] = report.get("modules") or {}
    if modules:
        elements.append(Paragraph("Modules", styles["Heading2"]))
        rows = [["Module", "Summary"]]
        for name, module in modules.items():
            rows.append([_MODULE_TITLES.get(name, name), _module_summary(name, module)[:90]])
        mt = Table(rows, colWidths=[140, 330])
        mt.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#0f172a")),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            *_GRID_STYLE,
        ]))
        elements.append(mt)
        elements.append(Spacer(1, 15))

    headers = ((modules.get("security_headers") or {}).get("result") or {})
    recommendations = headers.get("recommendations") or []
    if recommendations:
        elements.append(Paragraph("Recommendations", styles["Heading2"]))
        for recommendation in recommendations[:20]:
            elements.append(Paragraph(f"&bull; {escape(recommendation)}", styles["Normal"]))
            elements.append(Spacer(1, 4))

    doc.build(elements)
    return buffer.getvalue()


async def render_report(
    request_id: uuid.UUID,
    url: str,
    report: dict[str, Any],
    session_factory: async_sessionmaker[AsyncSession],
) -> Optional[str]:
    """Write the PDF for *request_id* and store its URL on the request.

    Returns:
        The public URL of the report.
    """
    settings = get_settings()
    pdf_bytes = await asyncio.to_thread(build_pdf, url, report)

    reports_dir = Path(settings.REPORTS_DIR)
    await asyncio.to_thread(reports_dir.mkdir, parents=True, exist_ok=True)
    await asyncio.to_thread((reports_dir / f"{request_id}.pdf").write_bytes, pdf_bytes)
    pdf_url = f"{settings.REPORTS_BASE_URL}/{request_id}.pdf"

    async with session_factory() as session:
        request = await session.get(DeepScanRequest, request_id)
        if request is not None:
            request.pdf_url = pdf_url
            await session.commit()

    logger.info(
        "PDF report written (%d bytes)",
        len(pdf_bytes),
        extra={"action": "report_rendered", "target": str(request_id)},
    )
    return pdf_url
