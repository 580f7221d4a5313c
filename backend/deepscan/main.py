"""
DeepScan FastAPI application entry point.

Creates and configures the FastAPI app with:
- CORS middleware
- Security headers middleware
- API v1 router (deep-scan trigger and subdomain finder)
- Health check endpoint
- Startup / shutdown lifecycle hooks for the database engine
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from deepscan.api.v1.router import router as v1_router
from deepscan.config import get_settings
from deepscan.core.database import engine
from deepscan.core.logging import configure_logging, get_logger

# ── Constants ────────────────────────────────────────────────────────────────

_HEALTH_CHECK_PATH: str = "/health"
_VERSION: str = "2.0.0"

_SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), camera=(), microphone=()",
}


# ── Security Headers Middleware ──────────────────────────────────────────────

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Inject the headers in ``_SECURITY_HEADERS`` into every response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response: Response = await call_next(request)
        for header_name, header_value in _SECURITY_HEADERS.items():
            response.headers[header_name] = header_value
        return response


# ── Lifespan ─────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Configure logging, verify the database on startup, dispose on shutdown."""
    settings = get_settings()
    configure_logging()
    logger = get_logger(__name__)
    logger.info(
        "Application starting",
        extra={"action": "startup", "target": settings.APP_NAME},
    )

    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info(
        "Database connection verified",
        extra={"action": "db_check", "target": settings.DATABASE_URL.split("@")[-1]},
    )

    yield

    logger.info(
        "Application shutting down",
        extra={"action": "shutdown", "target": settings.APP_NAME},
    )
    await engine.dispose()


# ── Application Factory ─────────────────────────────────────────────────────

def create_app() -> FastAPI:
    """Build and return the configured FastAPI application instance.

    Returns:
        A fully configured ``FastAPI`` app ready to serve requests.
    """
    settings = get_settings()

    application = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Deep security scan orchestration -- subdomain discovery, "
            "collaborator aggregation, weighted scoring and PDF reports."
        ),
        version=_VERSION,
        docs_url="/docs",
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Middleware (order matters: outermost first) ───────────────────────

    application.add_middleware(SecurityHeadersMiddleware)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        max_age=600,
    )

    # ── Routers ──────────────────────────────────────────────────────────

    application.include_router(v1_router, prefix=settings.API_V1_PREFIX)

    # ── Health Check ─────────────────────────────────────────────────────

    @application.get(
        _HEALTH_CHECK_PATH,
        tags=["health"],
        summary="Application health check",
        response_class=JSONResponse,
    )
    async def health_check() -> dict[str, Any]:
        """Return ``status``, ``app``, ``version`` and ``timestamp``."""
        return {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": _VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return application


# ── Module-Level App Instance ────────────────────────────────────────────────

app: FastAPI = create_app()
