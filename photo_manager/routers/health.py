"""
Health check and metrics endpoints.
"""
import asyncio
import logging
import time
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, Gauge, generate_latest
from sqlalchemy import text

from photo_manager.dependencies.services import ServiceContainer, get_container
from photo_manager.utils.metrics import ready

logger = logging.getLogger("photo_manager.health")
router = APIRouter(tags=["Health"])

health_check_status = Gauge(
    "photo_manager_health_check_status",
    "Health check status (1=healthy, 0=unhealthy)",
    registry=REGISTRY,
)


@router.get(
    "/health",
    summary="Health check",
)
async def health_check(
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    """
    Application and database status.

    Fails with 503 while shutting down or when the database does not answer
    within a second.
    """
    start_time = time.perf_counter()

    if ready._value.get() == 0:
        health_check_status.set(0)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application is shutting down",
        )

    checks: Dict[str, str] = {"storage": container.storage.name}

    if container.engine is not None:
        async def _check_db():
            async with container.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))

        try:
            await asyncio.wait_for(_check_db(), timeout=1.0)
            checks["database"] = "up"
        except asyncio.TimeoutError:
            logger.warning("DB health check timeout", extra={"event": "health"})
            health_check_status.set(0)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Database connection timeout",
            )
        except Exception as e:
            logger.warning("DB health check failed", extra={"event": "health", "error": str(e)})
            health_check_status.set(0)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Database connection failed",
            )
    else:
        checks["database"] = "memory"

    health_check_status.set(1)
    return {
        "status": "healthy",
        "checks": checks,
        "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
    }


@router.get(
    "/metrics",
    summary="Prometheus metrics",
)
async def metrics() -> Response:
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
