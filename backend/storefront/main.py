"""
FastAPI application assembly for the storefront.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from storefront.config import get_settings
from storefront.db.connection import get_db
from storefront.errors import HashingError, StoreUnavailable
from storefront.flows import prime_dummy_hash
from storefront.middleware import (
    GENERIC_FAILURE,
    STORE_FAILURE,
    AccessControlMiddleware,
    failure_response,
)
from storefront.sessions import purge_idle_sessions

# Import routers
from storefront.routers import auth, health, users

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    settings = get_settings()
    app.state.settings = settings

    logger.info("Storefront starting up")
    logger.info("  SESSION_TIMEOUT  = %d min", settings.SESSION_TIMEOUT_MINUTES)
    logger.info("  COOKIE_NAME      = %s", settings.SESSION_COOKIE_NAME)
    logger.info("  COOKIE_SECURE    = %s", settings.COOKIE_SECURE)
    logger.info("  PUBLIC_PATHS     = %s", settings.PUBLIC_PATHS)
    logger.info("  PUBLIC_PREFIXES  = %s", settings.PUBLIC_PREFIXES)
    logger.info("  STORE_TIMEOUT    = %d s", settings.STORE_TIMEOUT_SECS)

    try:
        with get_db() as db:
            removed = purge_idle_sessions(db, settings.session_timeout)
        logger.info("Purged %d idle session(s)", removed)
    except (StoreUnavailable, SQLAlchemyError) as exc:
        logger.warning("Skipping startup session purge: %s", exc)

    # Unknown-email logins verify against this hash; build it before traffic.
    await run_in_threadpool(prime_dummy_hash)

    yield  # Application is running

    logger.info("Storefront shutting down")


async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.error("Store unavailable on %s %s: %s", request.method, request.url.path, exc)
    return failure_response(request, 503, STORE_FAILURE)


async def hashing_error_handler(request: Request, exc: HashingError):
    logger.error("Password hashing failed on %s %s", request.method, request.url.path)
    return failure_response(request, 500, GENERIC_FAILURE)


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Storefront",
        description="Session-authenticated user management for the storefront",
        version="0.3.0",
        lifespan=lifespan,
    )

    # ---- Access control ----
    # Added first so CORS wraps it and preflight responses keep their headers.
    app.add_middleware(AccessControlMiddleware, settings=settings)

    # ---- CORS ----
    # Wildcard origins cannot be combined with credentialed cookies.
    explicit_origins = [o for o in settings.ALLOWED_ORIGINS if o != "*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=explicit_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---- Error mapping ----
    app.add_exception_handler(StoreUnavailable, store_unavailable_handler)
    app.add_exception_handler(HashingError, hashing_error_handler)

    # ---- Routers ----
    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(users.router)

    @app.get("/")
    def home() -> dict:
        return {"message": "Welcome to the Storefront", "users": "/users/list"}

    return app


# Module-level app instance for uvicorn
app = create_app()
