"""
FLIP Ledger Main Application Entry Point
FastAPI service for the token ledger, two-player rooms and coin flips.
"""

import sys
from pathlib import Path

# Add parent directory to path so imports work when running directly
if __name__ == "__main__":
    sys.path.insert(0, str(Path(__file__).parent.parent))

import sqlite3
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import settings
from app.core.exceptions import LedgerError
from app.core.logger import get_logger, init_logging
from app.core.services import LedgerServices
from app.routers import api

# Initialize logging first
init_logging(
    level=settings.logging.level,
    log_to_file=settings.logging.log_to_file,
    formatter=settings.logging.formatter,
    log_file_path=settings.paths.get_log_path(),
)
logger = get_logger("main")


# ==================== Security Headers Middleware ====================


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"
        return response


# ==================== Error Handlers ====================


async def ledger_error_handler(request: Request, exc: LedgerError):
    """Map business-rule failures to their stable error code."""
    logger.warning(
        f"{request.method} {request.url.path} rejected: {exc.message}",
        extra={"error": exc.code, "reason": exc.reason},
    )
    return ORJSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def store_error_handler(request: Request, exc: sqlite3.Error):
    """Store failures are not retried here; the caller decides."""
    logger.error(f"Store failure: {exc}", exc_info=True)
    return ORJSONResponse(
        status_code=503,
        content={
            "error": "store_unavailable",
            "message": "Ledger store unavailable",
            "detail": str(exc) if settings.server.debug else None,
        },
    )


async def global_exception_handler(request: Request, exc: Exception):
    """Handle unhandled exceptions gracefully."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return ORJSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "message": "Internal server error",
            "detail": str(exc) if settings.server.debug else None,
        },
    )


# ==================== Application Setup ====================


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    app.state.services.close()


def create_app(services: Optional[LedgerServices] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    The ledger services (and their database handle) are opened here unless
    passed in, live on `app.state.services`, and are closed on shutdown.
    """
    app = FastAPI(
        title=settings.server.name,
        docs_url="/docs" if settings.server.debug else None,
        redoc_url=None,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.state.services = services or LedgerServices.open()

    # Add slowapi rate limiter
    api.limiter.enabled = settings.rate_limit.enabled
    app.state.limiter = api.limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.add_exception_handler(sqlite3.Error, store_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    app.add_middleware(SecurityHeadersMiddleware)

    # CORS middleware (for development)
    if settings.server.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(api.router, prefix="/api")

    logger.info(f"Application '{settings.server.name}' initialized")
    logger.info(f"Debug mode: {settings.server.debug}")
    return app


# ==================== Main Entry Point ====================

if __name__ == "__main__":
    logger.info(f"Starting server on {settings.server.host}:{settings.server.port}")
    uvicorn.run(
        "app.main:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.server.debug,
    )
