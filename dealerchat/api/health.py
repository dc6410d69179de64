"""
Health check endpoints - used by load balancers and monitoring.

- GET /health       - basic liveness (always 200 if app running)
- GET /health/ready - readiness check (database when configured)
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from sqlalchemy import text

from dealerchat.workers.memory_sweeper import get_last_sweep

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])

VERSION = "1.0.0"


@router.get("/health")
async def health_check():
    """Basic liveness check - returns 200 if the app is running."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": VERSION,
    }


@router.get("/health/ready")
async def readiness_check(request: Request):
    """
    Readiness check. A missing database is reported, not fatal: the chat
    keeps answering with the null lead store.
    """
    state = request.app.state
    conductor = getattr(state, "conductor", None)
    session_factory = getattr(state, "session_factory", None)

    checks = {
        "database": None,
        "ai_configured": bool(conductor and conductor.ai.is_configured),
        "last_memory_sweep": get_last_sweep(),
    }

    if session_factory is not None:
        try:
            async with session_factory() as db:
                await db.execute(text("SELECT 1"))
            checks["database"] = True
        except Exception as e:
            logger.error("Database health check failed: %s", str(e))
            checks["database"] = False

    healthy = conductor is not None and checks["database"] is not False
    return {
        "status": "ready" if healthy else "degraded",
        "checks": checks,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
