"""
Celery task definitions for DeepScan.

This module registers the Celery task that bridges the synchronous Celery
worker environment with the async
:class:`~deepscan.engine.coordinator.DeepScanCoordinator`.

The task :func:`run_deep_scan` creates a fresh event loop and a database
engine bound to it, runs the coordinator, and waits for the coordinator's
background side effects before closing the loop.  The coordinator records
its own failures; if something escapes it anyway, the request is marked
``failed`` here and a ``scan_failed`` event is published.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any

from deepscan.core.celery_app import celery
from deepscan.core.database import create_task_engine, session_factory_for
from deepscan.core.logging import get_logger

logger = get_logger(__name__)


async def _execute_deep_scan(request_id: str) -> None:
    """Async entry point that builds a session factory and runs the coordinator.

    Args:
        request_id: UUID of the deep-scan request (as a string).
    """
    # Late import to avoid a circular dependency at module load time.
    from deepscan.engine.coordinator import DeepScanCoordinator

    task_engine = create_task_engine()
    task_session_factory = session_factory_for(task_engine)

    coordinator = DeepScanCoordinator(task_session_factory)
    try:
        try:
            await coordinator.run(request_id)
        except Exception as exc:
            logger.exception(
                "Deep scan %s crashed: %s",
                request_id,
                exc,
                extra={"action": "scan_crashed", "target": request_id},
            )
            await _mark_failed(task_session_factory, request_id, str(exc))
            raise
        finally:
            await coordinator.drain()
    finally:
        await task_engine.dispose()


async def _mark_failed(session_factory: Any, request_id: str, error_message: str) -> None:
    """Best-effort fallback: mark the request ``failed`` and announce it.

    Stores the same partial report the coordinator writes on its own
    failure path.
    """
    from deepscan.engine.coordinator import partial_report
    from deepscan.engine.notifications import notify_failure
    from deepscan.models.scan_request import DeepScanRequest, ScanStatus

    recipient = None
    try:
        async with session_factory() as db_session:
            request = await db_session.get(DeepScanRequest, uuid.UUID(request_id))
            if request is not None and not request.status.is_terminal:
                now = datetime.now(timezone.utc)
                request.status = ScanStatus.FAILED
                request.scan_results = partial_report(request, now).to_dict()
                request.error_message = error_message
                request.completed_at = now
                recipient = request.user_email
                await db_session.commit()
    except Exception as db_exc:
        logger.error(
            "Could not update request status to FAILED: %s",
            db_exc,
            extra={"action": "scan_status_update_error", "target": request_id},
        )

    try:
        await notify_failure(request_id, recipient, error_message)
    except Exception as pub_exc:
        logger.warning(
            "Could not publish scan failure event: %s",
            pub_exc,
            extra={"action": "redis_publish_error", "target": request_id},
        )


@celery.task(
    name="deepscan.run_deep_scan",
    bind=True,
    max_retries=0,
    acks_late=True,
    reject_on_worker_lost=False,
    track_started=True,
)
def run_deep_scan(self: Any, request_id: str) -> dict[str, str]:
    """Celery task that executes one deep scan.

    The task is deliberately non-retryable (``max_retries=0``): a second
    run would overwrite a terminal record.

    Args:
        self: The Celery task instance (bound via ``bind=True``).
        request_id: UUID of the :class:`~deepscan.models.DeepScanRequest`.

    Returns:
        A dictionary with ``request_id`` and ``status`` keys.
    """
    logger.info(
        "Celery task received for deep scan %s",
        request_id,
        extra={"action": "task_received", "target": request_id},
    )

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        loop.run_until_complete(_execute_deep_scan(request_id))
    finally:
        loop.close()

    logger.info(
        "Celery task finished for deep scan %s",
        request_id,
        extra={"action": "task_completed", "target": request_id},
    )
    return {"request_id": request_id, "status": "finished"}
