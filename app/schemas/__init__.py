"""Pydantic schemas for request/response validation."""

from app.schemas.common import BaseSchema, HealthResponse, SuccessResponse

__all__ = [
    "BaseSchema",
    "HealthResponse",
    "SuccessResponse",
]
