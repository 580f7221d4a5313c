"""
Deep-scan request model.

A :class:`DeepScanRequest` is created by the checkout flow in
``pending_payment`` state.  Once the payment is confirmed and processing has
been triggered, only the deep-scan coordinator writes to it; after it
reaches ``completed`` or ``failed`` it is never changed again, except for
``pdf_url`` which the report renderer fills in afterwards.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import DateTime, Enum, JSON, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from deepscan.core.database import Base


class ScanStatus(str, enum.Enum):
    """Lifecycle of a deep-scan request."""

    PENDING_PAYMENT = "pending_payment"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ScanStatus.COMPLETED, ScanStatus.FAILED)


PAYMENT_COMPLETED: str = "completed"


class DeepScanRequest(Base):
    """A paid request for a deep scan of one website.

    Attributes:
        id: UUID primary key, auto-generated.
        url: Website to scan, as entered by the customer.
        jwt_token: Optional bearer credential for the authenticated probe.
        user_email: Recipient of the completion notification.
        techniques: Optional subset of discovery techniques to run.
        payment_status: Payment state reported by the checkout flow.
        status: Current :class:`ScanStatus`.
        scan_results: Serialised aggregate report (or partial report).
        pdf_url: Public URL of the rendered PDF report.
        created_at: Row creation timestamp.
        started_at: When processing began.
        completed_at: When the request reached a terminal state.
        error_message: Orchestration error for ``failed`` requests.
    """

    __tablename__ = "deep_scan_requests"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    url: Mapped[str] = mapped_column(
        String(2048),
        nullable=False,
    )
    jwt_token: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    user_email: Mapped[Optional[str]] = mapped_column(
        String(320),
        nullable=True,
    )
    techniques: Mapped[Optional[list[str]]] = mapped_column(
        JSON,
        nullable=True,
    )
    payment_status: Mapped[str] = mapped_column(
        String(32),
        default="pending",
        nullable=False,
    )
    status: Mapped[ScanStatus] = mapped_column(
        Enum(ScanStatus, name="deep_scan_status", values_callable=lambda e: [m.value for m in e]),
        default=ScanStatus.PENDING_PAYMENT,
        nullable=False,
        index=True,
    )
    scan_results: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True,
    )
    pdf_url: Mapped[Optional[str]] = mapped_column(
        String(2048),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    error_message: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    @property
    def overall_score(self) -> Optional[int]:
        return (self.scan_results or {}).get("overall_score")

    def __repr__(self) -> str:
        return f"<DeepScanRequest id={self.id} url={self.url!r} status={self.status.value}>"
