"""FastAPI application entry point."""

import logging
import os

# Configure logging based on ENV environment variable
# ENV=dev: INFO level with detailed format (default)
# ENV=prod/staging: WARNING level, minimal logs
_env = os.getenv("ENV", "dev").lower()
_is_dev = _env == "dev"
_log_level = logging.INFO if _is_dev else logging.WARNING

logging.basicConfig(
    level=_log_level,
    format=(
        "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        if _is_dev
        else "%(levelname)s | %(message)s"
    ),
    datefmt="%H:%M:%S",
)

# Enable request/exception loggers in dev mode only
if _is_dev:
    logging.getLogger("extstore.request").setLevel(logging.INFO)
    logging.getLogger("extstore.exception").setLevel(logging.INFO)

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from extstore.api import health, submissions, sync
from extstore.config import settings
from extstore.middleware.exception_handlers import (
    general_exception_handler,
    http_exception_handler,
    store_error_handler,
    validation_exception_handler,
)
from extstore.middleware.request_logging import RequestLoggingMiddleware
from extstore.services.errors import StoreError
from extstore.services.rate_limiter import build_rate_limiter
from extstore.utils.prometheus_metrics import setup_prometheus

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Extension release sync and submission review API",
    version=settings.APP_VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[
        "Retry-After",
        "X-RateLimit-Limit",
        "X-RateLimit-Remaining",
        "X-RateLimit-Reset",
        "X-Request-Id",
    ],
)

# Trace middleware for request logging and correlation
app.add_middleware(RequestLoggingMiddleware)

# Register global exception handlers
app.add_exception_handler(StoreError, store_error_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)


app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(sync.router, prefix="/api", tags=["Sync"])
app.include_router(submissions.router, prefix="/api", tags=["Submissions"])

setup_prometheus(app)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/api/docs",
    }


@app.on_event("startup")
async def startup_event():
    """Application startup tasks."""
    app.state.rate_limiter = build_rate_limiter()

    # Ensure MongoDB indexes exist
    try:
        from extstore.database.ensure_indexes import ensure_indexes
        from extstore.database.mongo import get_database

        db = get_database()
        ensure_indexes(db)
    except Exception as e:
        logger.warning(f"Failed to ensure database indexes: {e}")

    if not settings.GITHUB_API_TOKEN:
        logger.warning("GITHUB_API_TOKEN not set; GitHub allows 60 requests/hour without it")
    if not settings.ADMIN_API_KEY:
        logger.info("ADMIN_API_KEY not set; admin endpoints accept bearer tokens only")
