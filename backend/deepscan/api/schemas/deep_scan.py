"""
Pydantic v2 schemas for the deep-scan trigger and status endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class DeepScanTrigger(BaseModel):
    """Payload for ``POST /api/v1/deep-scan/trigger``."""

    scan_request_id: UUID = Field(
        ...,
        description="Id of a paid deep-scan request awaiting processing.",
    )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class DeepScanTriggerResponse(BaseModel):
    """Returned with *202 Accepted* once processing has been handed to a worker."""

    success: bool = True
    request_id: UUID
    message: str


class DeepScanStatusResponse(BaseModel):
    """Current state of a deep-scan request.

    ``overall_score`` is only set once the request is ``completed``;
    ``scan_results`` holds the aggregate (or partial) report.
    """

    id: UUID
    url: str
    status: str
    payment_status: str
    overall_score: Optional[int] = None
    scan_results: Optional[dict[str, Any]] = None
    pdf_url: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
