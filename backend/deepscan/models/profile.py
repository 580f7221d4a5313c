"""
Customer profile model.

Only the columns the subdomain-finder gate needs: the session token issued
by the sign-in flow and the subscription plan.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from deepscan.core.database import Base

FREE_PLAN: str = "free"


class Profile(Base):
    """A signed-up customer.

    Attributes:
        id: UUID primary key.
        email: Login e-mail address.
        session_token: Current session bearer token (indexed, unique).
        subscription_plan: ``free``, ``pro``, ...
        created_at: Row creation timestamp.
    """

    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        unique=True,
    )
    session_token: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        unique=True,
        index=True,
    )
    subscription_plan: Mapped[str] = mapped_column(
        String(32),
        default=FREE_PLAN,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    @property
    def is_paid(self) -> bool:
        return (self.subscription_plan or FREE_PLAN).lower() != FREE_PLAN

    def __repr__(self) -> str:
        return f"<Profile email={self.email!r} plan={self.subscription_plan}>"
