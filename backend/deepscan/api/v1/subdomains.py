"""
Subdomain finder endpoint.

Runs a time-boxed discovery synchronously within the request.  Customers on
a paid plan call it with their session token; the deep-scan pipeline calls
it with the service credential and ``deepScanRequest: true``.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from deepscan.api.deps import get_db_session, get_paid_profile, require_service_key
from deepscan.api.schemas.discovery import SubdomainFinderRequest, SubdomainFinderResponse
from deepscan.engine.discovery import find_subdomains

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=SubdomainFinderResponse,
    summary="Discover live subdomains of a domain",
)
async def subdomain_finder(
    body: SubdomainFinderRequest,
    authorization: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> SubdomainFinderResponse:
    """Enumerate subdomains of ``body.domain``.

    Raises:
        HTTPException: *401* without a valid session (or service key for
            internal calls), *403* for free-plan profiles.  Malformed
            domains are rejected with *422* during body validation.
    """
    if body.deep_scan_request:
        await require_service_key(authorization)
    else:
        profile = await get_paid_profile(authorization, db)
        logger.info("Subdomain finder used by %s for %s", profile.email, body.domain)

    try:
        report = await find_subdomains(body.domain, body.mode)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc

    return SubdomainFinderResponse.from_report(report)
