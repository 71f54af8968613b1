"""
Health check endpoints.

Provides system health information for monitoring.
"""

from fastapi import APIRouter, HTTPException
import structlog

from gtd_review.core.config import settings
from gtd_review.persistence.database import check_database_health

log = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        System health status including database connectivity.
    """
    db_health = await check_database_health()

    overall_status = "healthy" if db_health["status"] == "healthy" else "unhealthy"

    return {
        "status": overall_status,
        "version": "0.1.0",
        "debug": settings.debug,
        "components": {"database": db_health},
    }


@router.get("/health/live")
async def liveness():
    """Liveness probe. Returns 200 if the application is running."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness():
    """
    Readiness probe.

    Returns 200 once the review database answers, 503 otherwise.
    """
    db_health = await check_database_health()

    if db_health["status"] != "healthy":
        log.warning("readiness_check_failed", error=db_health.get("error"))
        raise HTTPException(status_code=503, detail="Database not ready")

    return {"status": "ready"}
