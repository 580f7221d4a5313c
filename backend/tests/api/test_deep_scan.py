"""
Tests for the deep-scan trigger and status endpoints.

Covers service-key enforcement, unknown requests, the payment gate (which
must leave the request untouched), double triggers, worker dispatch and the
status read-back via the ``/api/v1/deep-scan`` routes.
"""

from __future__ import annotations

import uuid
from unittest.mock import MagicMock, patch

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from deepscan.models.scan_request import DeepScanRequest, ScanStatus


@pytest.mark.asyncio
async def test_trigger_requires_service_key(client: AsyncClient, paid_request: DeepScanRequest) -> None:
    """POST /trigger without the service key returns 401."""
    response = await client.post(
        "/api/v1/deep-scan/trigger",
        json={"scan_request_id": str(paid_request.id)},
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_trigger_rejects_wrong_service_key(client: AsyncClient, paid_request: DeepScanRequest) -> None:
    """POST /trigger with another bearer token returns 401."""
    response = await client.post(
        "/api/v1/deep-scan/trigger",
        json={"scan_request_id": str(paid_request.id)},
        headers={"Authorization": "Bearer not-the-service-key"},
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_trigger_unknown_request(client: AsyncClient, service_headers: dict[str, str]) -> None:
    """POST /trigger for a non-existent request returns 404."""
    response = await client.post(
        "/api/v1/deep-scan/trigger",
        json={"scan_request_id": str(uuid.uuid4())},
        headers=service_headers,
    )

    assert response.status_code == 404
    assert "not found" in response.json()["detail"].lower()


@pytest.mark.asyncio
async def test_trigger_unpaid_request_is_left_untouched(
    client: AsyncClient,
    db_session: AsyncSession,
    unpaid_request: DeepScanRequest,
    service_headers: dict[str, str],
) -> None:
    """POST /trigger before payment returns 400 and does not change the status."""
    with patch("deepscan.tasks.scan_tasks.run_deep_scan") as mock_task:
        response = await client.post(
            "/api/v1/deep-scan/trigger",
            json={"scan_request_id": str(unpaid_request.id)},
            headers=service_headers,
        )

    assert response.status_code == 400
    assert "payment" in response.json()["detail"].lower()
    mock_task.delay.assert_not_called()

    await db_session.refresh(unpaid_request)
    assert unpaid_request.status is ScanStatus.PENDING_PAYMENT
    assert unpaid_request.started_at is None


@pytest.mark.asyncio
async def test_trigger_dispatches_worker(
    client: AsyncClient,
    db_session: AsyncSession,
    paid_request: DeepScanRequest,
    service_headers: dict[str, str],
) -> None:
    """POST /trigger for a paid request returns 202 and queues the task."""
    with patch("deepscan.tasks.scan_tasks.run_deep_scan") as mock_task:
        mock_task.delay = MagicMock()
        response = await client.post(
            "/api/v1/deep-scan/trigger",
            json={"scan_request_id": str(paid_request.id)},
            headers=service_headers,
        )

    assert response.status_code == 202, response.text
    data = response.json()
    assert data["success"] is True
    assert data["request_id"] == str(paid_request.id)
    mock_task.delay.assert_called_once_with(str(paid_request.id))

    await db_session.refresh(paid_request)
    assert paid_request.status is ScanStatus.PROCESSING
    assert paid_request.started_at is not None


@pytest.mark.asyncio
async def test_trigger_twice_conflicts(
    client: AsyncClient,
    processing_request: DeepScanRequest,
    service_headers: dict[str, str],
) -> None:
    """A request that is already processing cannot be triggered again."""
    with patch("deepscan.tasks.scan_tasks.run_deep_scan") as mock_task:
        response = await client.post(
            "/api/v1/deep-scan/trigger",
            json={"scan_request_id": str(processing_request.id)},
            headers=service_headers,
        )

    assert response.status_code == 409
    mock_task.delay.assert_not_called()


@pytest.mark.asyncio
async def test_trigger_queue_unavailable_marks_failed(
    client: AsyncClient,
    db_session: AsyncSession,
    paid_request: DeepScanRequest,
    service_headers: dict[str, str],
) -> None:
    """When the broker refuses the task the request ends up failed and 503 is returned."""
    with patch("deepscan.tasks.scan_tasks.run_deep_scan") as mock_task:
        mock_task.delay = MagicMock(side_effect=ConnectionError("broker down"))
        response = await client.post(
            "/api/v1/deep-scan/trigger",
            json={"scan_request_id": str(paid_request.id)},
            headers=service_headers,
        )

    assert response.status_code == 503

    await db_session.refresh(paid_request)
    assert paid_request.status is ScanStatus.FAILED
    assert "broker down" in paid_request.error_message


@pytest.mark.asyncio
async def test_trigger_invalid_body(client: AsyncClient, service_headers: dict[str, str]) -> None:
    """A malformed request id is rejected with 422."""
    response = await client.post(
        "/api/v1/deep-scan/trigger",
        json={"scan_request_id": "not-a-uuid"},
        headers=service_headers,
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_get_status(
    client: AsyncClient,
    processing_request: DeepScanRequest,
    service_headers: dict[str, str],
) -> None:
    """GET /deep-scan/{id} returns the current status of the request."""
    response = await client.get(
        f"/api/v1/deep-scan/{processing_request.id}",
        headers=service_headers,
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["id"] == str(processing_request.id)
    assert data["status"] == "processing"
    assert data["overall_score"] is None
    assert data["scan_results"] is None


@pytest.mark.asyncio
async def test_get_status_not_found(client: AsyncClient, service_headers: dict[str, str]) -> None:
    """GET /deep-scan/{id} for an unknown id returns 404."""
    response = await client.get(f"/api/v1/deep-scan/{uuid.uuid4()}", headers=service_headers)

    assert response.status_code == 404
