"""
Shared FastAPI dependency functions for the DeepScan API.

Provides database session injection, the service-credential check, and the
deep-scan request loader reused across endpoint modules.
"""

from __future__ import annotations

from typing import AsyncGenerator, Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from deepscan.config import get_settings
from deepscan.core.database import async_session_factory
from deepscan.core.errors import AuthorizationFailure
from deepscan.core.security import parse_bearer_token, verify_service_key
from deepscan.models.profile import Profile
from deepscan.models.scan_request import DeepScanRequest


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session and guarantee cleanup on exit.

    The session is committed automatically when the request handler finishes
    without raising an exception.  On failure the transaction is rolled back.
    In both cases the session is closed.

    Yields:
        An :class:`~sqlalchemy.ext.asyncio.AsyncSession` bound to the
        application engine.
    """
    session = async_session_factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_service_key(
    authorization: Optional[str] = Header(default=None),
) -> None:
    """Reject requests that do not carry the service-role key.

    Raises:
        HTTPException: *401 Unauthorized* for a missing or wrong key.
    """
    try:
        verify_service_key(authorization, get_settings().SERVICE_ROLE_KEY)
    except AuthorizationFailure as exc:
        raise _unauthorized(str(exc)) from exc


async def get_paid_profile(
    authorization: Optional[str],
    db: AsyncSession,
) -> Profile:
    """Resolve a session bearer token to a profile on a paid plan.

    Raises:
        HTTPException: *401* without a known session, *403* on the free plan.
    """
    token = parse_bearer_token(authorization)
    if token is None:
        raise _unauthorized("Authentication required.")

    result = await db.execute(select(Profile).where(Profile.session_token == token))
    profile = result.scalar_one_or_none()
    if profile is None:
        raise _unauthorized("Session not found or expired.")

    if not profile.is_paid:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Subdomain discovery requires a paid subscription.",
        )
    return profile


async def validate_request_exists(
    request_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> DeepScanRequest:
    """Load a :class:`~deepscan.models.DeepScanRequest` or raise 404.

    Raises:
        HTTPException: *404 Not Found* if no request with the given ID exists.
    """
    request = await db.get(DeepScanRequest, request_id)
    if request is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Deep-scan request '{request_id}' not found.",
        )
    return request
