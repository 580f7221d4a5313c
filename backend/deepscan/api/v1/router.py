"""
Aggregated APIRouter for API version 1.

All v1 endpoint routers are included here and exposed as a single ``router``
instance that is mounted by the FastAPI application in ``deepscan.main``.  The
prefix ``/api/v1`` is applied by the application, so sub-routers only declare
their own resource prefix (e.g. ``/deep-scan``).
"""

from __future__ import annotations

from fastapi import APIRouter

from deepscan.api.v1 import deep_scan, subdomains

router = APIRouter()

router.include_router(
    deep_scan.router,
    prefix="/deep-scan",
    tags=["deep-scan"],
)
router.include_router(
    subdomains.router,
    prefix="/subdomain-finder",
    tags=["subdomains"],
)
