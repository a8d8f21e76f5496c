"""Health check endpoints."""

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends
from sqlalchemy import text

from app.core.config import settings
from app.core.deps import DBSession, get_redis
from app.schemas.common import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: DBSession,
    redis_client: aioredis.Redis = Depends(get_redis),
) -> HealthResponse:
    """
    Health check endpoint.

    Checks database and Redis (Celery broker) connectivity.
    """
    overall = "healthy"
    checks: dict[str, str] = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception as e:
        overall = "unhealthy"
        checks["database"] = f"unhealthy: {e}"

    try:
        await redis_client.ping()
        checks["redis"] = "healthy"
    except Exception as e:
        overall = "unhealthy"
        checks["redis"] = f"unhealthy: {e}"

    return HealthResponse(
        status=overall,
        version=settings.version,
        environment=settings.environment,
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """Liveness probe: the process is up."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(db: DBSession) -> dict[str, str]:
    """Readiness probe: the database answers."""
    await db.execute(text("SELECT 1"))
    return {"status": "ready"}
