from __future__ import annotations

from feedback_gate.api.routes.feedback import router as feedback_router
from feedback_gate.api.routes.health import router as health_router
from feedback_gate.api.routes.integrity import router as integrity_router

__all__ = ["feedback_router", "health_router", "integrity_router"]
