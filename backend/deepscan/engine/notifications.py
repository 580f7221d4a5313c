"""
Completion notifications over Redis Pub/Sub.

Events are published on ``deep_scan:{request_id}``.  The mailer service
subscribes to that pattern and e-mails ``recipient`` when a scan finishes.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Optional

import redis.asyncio as aioredis

from deepscan.config import get_settings
from deepscan.core.logging import get_logger

logger = get_logger(__name__)


def channel_for(request_id: str) -> str:
    return f"deep_scan:{request_id}"


async def publish_event(request_id: str, event_type: str, data: dict[str, Any]) -> None:
    """Publish one JSON event for *request_id*.

    Args:
        request_id: Deep-scan request UUID (used as the channel suffix).
        event_type: ``scan_completed`` or ``scan_failed``.
        data:       JSON-serialisable payload.

    Raises:
        redis.exceptions.RedisError: When the broker cannot be reached.
    """
    settings = get_settings()
    message: str = json.dumps(
        {
            "event": event_type,
            "request_id": request_id,
            "data": data,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        default=str,
    )
    redis_client = aioredis.from_url(settings.REDIS_URL)
    async with redis_client:
        await redis_client.publish(channel_for(request_id), message)


async def notify_completion(
    request_id: str,
    recipient: Optional[str],
    report: dict[str, Any],
    pdf_url: Optional[str],
) -> None:
    """Announce a completed scan with its headline numbers."""
    tally = report.get("risk_summary") or {}
    await publish_event(request_id, "scan_completed", {
        "recipient": recipient,
        "overall_score": report.get("overall_score"),
        "critical_issues": tally.get("critical", 0),
        "pdf_url": pdf_url,
    })
    logger.info(
        "Completion notification published",
        extra={"action": "notify_completed", "target": request_id},
    )


async def notify_failure(request_id: str, recipient: Optional[str], error_message: str) -> None:
    """Announce a failed scan."""
    await publish_event(request_id, "scan_failed", {
        "recipient": recipient,
        "error": error_message,
    })
