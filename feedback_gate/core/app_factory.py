"""Application factory for the FastAPI app.

Builds the process-wide collaborators (rate limiter, submission store and
service) once, keeps them on ``app.state`` and wires middleware, handlers
and routers around them.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from feedback_gate.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from feedback_gate.adapters.submissions.base import AbstractSubmissionStore
from feedback_gate.adapters.submissions.in_memory import InMemorySubmissionStore
from feedback_gate.api.routes import feedback_router, health_router, integrity_router
from feedback_gate.core.config import settings
from feedback_gate.core.exception_handlers import setup_exception_handlers
from feedback_gate.core.logging import configure_logging
from feedback_gate.core.middleware import request_id_middleware
from feedback_gate.core.rate_limit import build_rate_limiter
from feedback_gate.services.submission_service import SubmissionService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the rate limiter's background sweep while the app is serving."""
    limiter: InMemoryFixedWindowRateLimiter = app.state.rate_limiter
    limiter.start_sweeper(settings.app.rate_limit_sweep_interval_seconds)
    try:
        yield
    finally:
        limiter.stop_sweeper()


def create_app(
    *,
    rate_limiter: InMemoryFixedWindowRateLimiter | None = None,
    submission_store: AbstractSubmissionStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        rate_limiter: Limiter to use; built from settings when omitted.
        submission_store: Store to use; a fresh in-memory store when omitted.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Feedback Gate API",
        description=(
            "Patient feedback intake guarded by a per-client fixed-window rate "
            "limit, near-duplicate detection and SHA-256 integrity fingerprints."
        ),
        version="0.1.0",
        debug=settings.app.debug,
        lifespan=lifespan,
    )

    # Both collaborators define __len__, so an empty one is falsy
    store = submission_store if submission_store is not None else InMemorySubmissionStore()
    app.state.rate_limiter = rate_limiter if rate_limiter is not None else build_rate_limiter(settings.app)
    app.state.submission_store = store
    app.state.submission_service = SubmissionService(
        store,
        duplicate_detection_enabled=settings.app.duplicate_detection_enabled,
        similarity_threshold=settings.app.duplicate_similarity_threshold,
    )

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(feedback_router, prefix="/v1")
    app.include_router(integrity_router, prefix="/v1")
    app.include_router(health_router)

    logger.info(
        "app.created",
        extra={
            "app_env": settings.app_env,
            "rate_limit_enabled": settings.app.rate_limit_enabled,
            "rate_limit_max_requests": settings.app.rate_limit_max_requests,
            "rate_limit_window_ms": settings.app.rate_limit_window_ms,
        },
    )
    return app
