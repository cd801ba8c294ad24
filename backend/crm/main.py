"""
SEO Dons CRM Backend - FastAPI Application Entry Point

Sales CRM API: Twilio voice webhooks and dialer, background message
retries, calendar and LinkedIn integrations, and user administration.
"""

import sys
import time
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from .core.config import settings
from .core.database import engine, check_db_connection
from .core.logging import configure_logging
from .schemas.common import ErrorResponse
from .api import (
    health_router,
    voice_webhooks_router,
    calling_router,
    messages_router,
    admin_router,
    calendar_router,
    linkedin_router,
    auth_webhooks_router,
)


configure_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# Performance Monitoring Middleware
# =============================================================================

class PerformanceMonitoringMiddleware(BaseHTTPMiddleware):
    """
    Track API response times and log slow requests.

    Adds X-Response-Time header to all responses.
    """

    SLOW_REQUEST_THRESHOLD_MS = 500

    async def dispatch(self, request: Request, call_next):
        start_time = time.monotonic()
        response = await call_next(request)
        process_time_ms = (time.monotonic() - start_time) * 1000

        response.headers["X-Response-Time"] = f"{process_time_ms:.2f}ms"
        if process_time_ms > self.SLOW_REQUEST_THRESHOLD_MS:
            logger.warning(
                f"Slow request: {request.method} {request.url.path} "
                f"took {process_time_ms:.2f}ms"
            )
        elif settings.debug:
            logger.debug(f"{request.method} {request.url.path} - {process_time_ms:.2f}ms")

        return response


# =============================================================================
# Application Lifespan
# =============================================================================

def insecure_secrets() -> list:
    """Names of security settings still at their development defaults."""
    found = []
    if settings.secret_key == "dev-secret-key-change-in-production":
        found.append("SECRET_KEY")
    if settings.encryption_key.rstrip("0") == "dev-encryption-key-32bytes!":
        found.append("ENCRYPTION_KEY")
    if settings.auth_jwt_key == "dev-auth-signing-key-change-in-production":
        found.append("AUTH_JWT_KEY")
    return found


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info(f"Starting {settings.app_name} v{settings.app_version} ({settings.environment})")

    # Refuse to start in production with insecure defaults
    weak = insecure_secrets()
    if weak and settings.is_production:
        logger.critical(f"Dev-default secrets in production: {', '.join(weak)}. Refusing to start.")
        sys.exit(1)
    elif weak:
        logger.warning(f"Dev-default secrets in use: {', '.join(weak)}. Change them before deploying.")

    if not check_db_connection():
        logger.error("Database is not reachable at startup")
    if not settings.twilio_configured:
        logger.warning("Twilio is not configured; calling endpoints will be unavailable")

    yield

    logger.info("Shutting down...")
    engine.dispose()


# =============================================================================
# Application Factory
# =============================================================================

def create_application() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Sales CRM API: telephony webhooks, dialer, message retries and integrations.",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan,
    )

    # Compress responses > 1KB
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(PerformanceMonitoringMiddleware)

    cors_origins = settings.cors_origins_list
    allow_all = "*" in cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else cors_origins,
        allow_credentials=not allow_all,  # credentials not compatible with wildcard
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Response-Time"],
    )

    app.include_router(health_router)
    app.include_router(voice_webhooks_router)
    app.include_router(calling_router)
    app.include_router(messages_router)
    app.include_router(admin_router)
    app.include_router(calendar_router)
    app.include_router(linkedin_router)
    app.include_router(auth_webhooks_router)

    register_exception_handlers(app)
    return app


# =============================================================================
# Exception Handlers
# =============================================================================

def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as ``{"error": ...}``; internals never reach the client."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=str(exc.detail)).model_dump(exclude_none=True),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content=ErrorResponse(
                error="Invalid request",
                details=jsonable_encoder(exc.errors(), exclude={"input", "ctx"}),
            ).model_dump(),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error="Internal server error").model_dump(exclude_none=True),
        )


app = create_application()


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict:
    """
    Root endpoint returning API information.
    """
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "docs": "/docs" if settings.is_development else "disabled",
    }


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "crm.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level="debug" if settings.debug else "info",
    )
