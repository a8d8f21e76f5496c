"""API v1 router combining all route modules."""

from fastapi import APIRouter

from app.api.v1 import analytics, events, health, sessions

api_router = APIRouter()

# Include health check routes (no prefix)
api_router.include_router(health.router)

# Session lifecycle (open, called by the storefront client)
api_router.include_router(
    sessions.router,
    prefix="/session",
    tags=["sessions"],
)

# Event ingestion (open except security events)
api_router.include_router(
    events.router,
    tags=["events"],
)

# Analytics (admin dashboard)
api_router.include_router(
    analytics.router,
    prefix="/analytics",
    tags=["analytics"],
)
