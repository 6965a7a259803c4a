"""Health & Readiness Probes — liveness and readiness endpoints.

Invariants:
    - GET /health/ always returns 200 if the process is up (liveness)
    - GET /health/ready returns 503 if the tool sandbox or handoff engine is
      unhealthy, or the database (sql memory backend only) is unreachable
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from coachflow.api.dependencies import get_services
from coachflow.services.bootstrap import Services

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return {
        "status": "healthy",
        "service": "coachflow-api",
        "version": "0.1.0",
    }


@router.get("/ready")
async def readiness_check(services: Services = Depends(get_services)):
    handoff_health = services.handoffs.get_health_status()
    checks = {
        "tool_sandbox": "healthy" if services.sandbox.is_healthy() else "unhealthy",
        "handoff_engine": "healthy" if handoff_health["is_healthy"] else "unhealthy",
        "agents": "healthy" if services.manager.is_ready() else "unhealthy",
    }
    if services.db_manager is not None:
        db_ok = await services.db_manager.health_check()
        checks["database"] = "healthy" if db_ok else "unhealthy"

    if any(v != "healthy" for v in checks.values()):
        logger.warning("Readiness check failed: %s", checks)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "checks": checks,
                "issues": handoff_health["issues"],
            },
        )
    return {"status": "ready", "checks": checks}
