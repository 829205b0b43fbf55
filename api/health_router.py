"""
Health and Monitoring Router.

Public endpoints for uptime checks and operational visibility.

Endpoints Provided:
- `/healthcheck`: Lightweight liveness check.
- `/monitoring/ping`: Connectivity check.
- `/monitoring/detailed`: Status of the database, the live viewer set and the
  periodic tasks. Reports "degraded" when the database is unhealthy.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends

from core.database import get_database_info
from core.logging_config import get_logger
from .dependencies import ServiceContainer, get_container

logger = get_logger(__name__)

SERVICE_NAME = "Bubble Map API"
VERSION = "1.0.0"

health_router = APIRouter(tags=["Health & Monitoring"])

monitoring_router = APIRouter(prefix="/monitoring", tags=["Health & Monitoring"])


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@health_router.get("/healthcheck")
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint

    Returns:
        Dict with status, timestamp, and version info
    """
    logger.debug("Health check requested")

    return {
        "status": "healthy",
        "timestamp": _timestamp(),
        "version": VERSION,
        "service": SERVICE_NAME,
    }


@monitoring_router.get("/ping")
async def ping() -> Dict[str, str]:
    """Simple ping endpoint for connectivity testing"""
    return {"message": "pong", "timestamp": _timestamp(), "version": VERSION}


@monitoring_router.get("/detailed")
async def detailed_health_check(
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    """Detailed health check with component status"""
    logger.info("Detailed health check requested")

    health_status = {
        "status": "healthy",
        "timestamp": _timestamp(),
        "version": VERSION,
        "service": SERVICE_NAME,
        "components": {},
    }

    db_info = await get_database_info(container.database)
    health_status["components"]["database"] = {
        "status": "healthy" if db_info["connection_healthy"] else "unhealthy",
        "info": db_info,
    }
    if not db_info["connection_healthy"]:
        health_status["status"] = "degraded"

    health_status["components"]["websockets"] = container.hub.get_stats()
    health_status["components"]["scheduler"] = container.scheduler.get_stats()

    return health_status
