"""Dependency injection for FastAPI routes."""

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

import redis.asyncio as aioredis
from fastapi import Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

# Re-export auth dependencies for convenience
from app.core.auth import (
    AdminUser,
    CurrentUser,
    OptionalUser,
    get_current_user,
    get_optional_user,
    require_admin,
)
from app.core.config import settings
from app.core.database import get_async_session
from app.services.date_range import DateRange, parse_query_date

logger = logging.getLogger(__name__)

# Type alias for database session dependency
AsyncSessionDep = Annotated[AsyncSession, Depends(get_async_session)]


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Alias for get_async_session, overridable in tests."""
    async for session in get_async_session():
        yield session


# Shared Redis connection pool
_redis_pool: aioredis.ConnectionPool | None = None


def _get_redis_pool() -> aioredis.ConnectionPool:
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        _redis_pool = aioredis.ConnectionPool.from_url(
            str(settings.redis_url), decode_responses=True
        )
    return _redis_pool


async def get_redis() -> AsyncGenerator[aioredis.Redis, None]:
    """Yield a Redis client from the shared connection pool."""
    pool = _get_redis_pool()
    r = aioredis.Redis(connection_pool=pool)
    try:
        yield r
    finally:
        await r.aclose()


# Database session dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]


def get_date_range(
    start_date: str | None = Query(None, alias="startDate", description="ISO start date"),
    end_date: str | None = Query(None, alias="endDate", description="ISO end date"),
) -> DateRange:
    """Resolve the dashboard date range from query parameters.

    Defaults to the trailing 30 days (inclusive of today).
    """
    try:
        return DateRange.from_query(parse_query_date(start_date), parse_query_date(end_date))
    except ValueError as e:
        logger.warning("Rejected date range startDate=%r endDate=%r: %s", start_date, end_date, e)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid date range",
        )


DateRangeDep = Annotated[DateRange, Depends(get_date_range)]


__all__ = [
    "AdminUser",
    "AsyncSessionDep",
    "CurrentUser",
    "DBSession",
    "DateRangeDep",
    "OptionalUser",
    "get_current_user",
    "get_date_range",
    "get_db",
    "get_optional_user",
    "get_redis",
    "require_admin",
]
