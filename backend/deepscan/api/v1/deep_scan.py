"""
Deep-scan trigger and status endpoints.

The trigger is called by the payment webhook once checkout completes.  It
only validates, flips the request to ``processing`` and hands it to a Celery
worker; the scan itself runs in the background.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from deepscan.api.deps import get_db_session, require_service_key, validate_request_exists
from deepscan.api.schemas.deep_scan import (
    DeepScanStatusResponse,
    DeepScanTrigger,
    DeepScanTriggerResponse,
)
from deepscan.models.scan_request import PAYMENT_COMPLETED, DeepScanRequest, ScanStatus

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_service_key)])

# ---------------------------------------------------------------------------
# POST /deep-scan/trigger
# ---------------------------------------------------------------------------


@router.post(
    "/trigger",
    response_model=DeepScanTriggerResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start processing a paid deep-scan request",
)
async def trigger_deep_scan(
    body: DeepScanTrigger,
    db: AsyncSession = Depends(get_db_session),
) -> DeepScanTriggerResponse:
    """Move a paid request to ``processing`` and dispatch the worker task.

    Args:
        body: The validated trigger payload.
        db: The database session (injected).

    Returns:
        A :class:`DeepScanTriggerResponse`; the scan continues in the
        background.

    Raises:
        HTTPException: *404* for an unknown request, *400* when the payment
            is not completed (the request is left untouched), *409* when the
            request is not awaiting processing, *503* when the task cannot
            be queued.
    """
    request = await db.get(DeepScanRequest, body.scan_request_id)
    if request is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Deep-scan request '{body.scan_request_id}' not found.",
        )

    if request.payment_status != PAYMENT_COMPLETED:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Payment not completed.",
        )

    if request.status is not ScanStatus.PENDING_PAYMENT:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Deep-scan request is already {request.status.value}.",
        )

    request.status = ScanStatus.PROCESSING
    request.started_at = datetime.now(timezone.utc)
    # The worker must see the new status, so commit before dispatching.
    await db.commit()

    from deepscan.tasks.scan_tasks import run_deep_scan  # noqa: WPS433 (local import)

    try:
        run_deep_scan.delay(str(request.id))
    except Exception as exc:
        logger.exception("Could not queue deep scan %s", request.id)
        request.status = ScanStatus.FAILED
        request.error_message = f"Could not queue scan: {exc}"
        request.completed_at = datetime.now(timezone.utc)
        await db.commit()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scan queue unavailable.",
        ) from exc

    logger.info("Deep scan %s queued for %s", request.id, request.url)
    return DeepScanTriggerResponse(
        success=True,
        request_id=request.id,
        message="Deep scan started. Results will be delivered when processing completes.",
    )


# ---------------------------------------------------------------------------
# GET /deep-scan/{request_id}
# ---------------------------------------------------------------------------


@router.get(
    "/{request_id}",
    response_model=DeepScanStatusResponse,
    summary="Get the status and results of a deep-scan request",
)
async def get_deep_scan(
    request_id: UUID,
    request: DeepScanRequest = Depends(validate_request_exists),
) -> DeepScanStatusResponse:
    """Return status, score, results and error of one request."""
    return DeepScanStatusResponse(
        id=request.id,
        url=request.url,
        status=request.status.value,
        payment_status=request.payment_status,
        overall_score=request.overall_score,
        scan_results=request.scan_results,
        pdf_url=request.pdf_url,
        error_message=request.error_message,
        created_at=request.created_at,
        started_at=request.started_at,
        completed_at=request.completed_at,
    )
