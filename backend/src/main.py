"""Klaro Reply Relay - Main FastAPI Application

Receives hospital replies addressed to the Mailgun relay domain, links them
to the applicant's job application and forwards them to the applicant.

This module creates and configures the FastAPI application, including:
- Routers (inbound webhook, observability)
- Middleware (request ID correlation)
- Exception handlers
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from config import get_settings
from inbound.router import router as inbound_router
from observability.logging_config import configure_logging
from observability.middleware import RequestIDMiddleware
from observability.router import router as observability_router

settings = get_settings()

configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log startup configuration and shutdown."""
    logger.info("Klaro reply relay starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    if not (settings.MAILGUN_WEBHOOK_SIGNING_KEY and settings.MAILGUN_API_KEY and settings.MAILGUN_DOMAIN):
        logger.warning("Mailgun is not fully configured; inbound webhook will answer 500")

    yield

    logger.info("Klaro reply relay shutting down...")


_docs_enabled = settings.ENVIRONMENT != "production"

app = FastAPI(
    title="Klaro Reply Relay",
    description="Mailgun inbound relay linking hospital replies to job applications",
    version="0.1.0",
    docs_url="/docs" if _docs_enabled else None,
    redoc_url="/redoc" if _docs_enabled else None,
    openapi_url="/openapi.json" if _docs_enabled else None,
    lifespan=lifespan,
)


# =============================================================================
# MIDDLEWARE CONFIGURATION
# =============================================================================

app.add_middleware(RequestIDMiddleware)


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    logger.warning(
        f"Validation error on {request.method} {request.url.path}",
        extra={"errors": exc.errors()}
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "validation_error",
            "message": "Request validation failed",
            "details": exc.errors(),
        },
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(
    request: Request,
    exc: SQLAlchemyError
) -> JSONResponse:
    """Handle database errors.

    Logs the full error but returns a generic message so Mailgun retries the
    delivery without seeing internals.
    """
    logger.error(
        f"Database error on {request.method} {request.url.path}",
        exc_info=exc
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "database_error",
            "message": "A database error occurred. Please try again later.",
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}",
        exc_info=exc
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred. Please try again later.",
        },
    )


# =============================================================================
# ROUTER REGISTRATION
# =============================================================================

# Observability (health, metrics, ready)
app.include_router(observability_router)

# Mailgun webhooks
app.include_router(inbound_router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
async def root() -> dict[str, Any]:
    return {
        "name": "Klaro Reply Relay",
        "version": "0.1.0",
        "status": "running",
        "docs": "/docs" if _docs_enabled else None,
    }


def create_app() -> FastAPI:
    """Return the configured application (used by tests and ASGI servers)."""
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        log_level=settings.LOG_LEVEL.lower(),
    )
