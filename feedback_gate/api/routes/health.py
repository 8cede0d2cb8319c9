from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Liveness check with a glimpse of the rate limiter's table.

    Returns:
        dict: ``status`` plus the number of tracked clients and whether the
            background sweep is running.
    """

    limiter = request.app.state.rate_limiter
    return {
        "status": "ok",
        "rate_limiter": {
            "entries": len(limiter),
            "sweeper_running": limiter.sweeper_running,
        },
    }
