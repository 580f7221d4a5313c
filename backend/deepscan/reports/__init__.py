"""PDF rendering of finished deep scans."""

from deepscan.reports.renderer import build_pdf, render_report

__all__ = ["build_pdf", "render_report"]
