"""Event record variants and ingestion request bodies.

Each event kind is a closed record type with a ``kind`` discriminator so a
log row can only ever have one shape. Records validate required fields when
they are built; the event store rejects anything else.
"""

from datetime import datetime
from typing import Annotated, Literal
from uuid import UUID

from pydantic import Field

from app.models.events import CartAction
from app.schemas.common import BaseSchema


class PageViewRecord(BaseSchema):
    kind: Literal["page_view"] = "page_view"
    session_id: str = Field(..., min_length=1)
    user_id: UUID | None = None
    email: str | None = None
    ip: str | None = None
    user_agent: str | None = None
    page: str = Field(..., min_length=1)
    referrer: str | None = ""
    timestamp: datetime | None = None


class CartActionRecord(BaseSchema):
    kind: Literal["cart_action"] = "cart_action"
    session_id: str = Field(..., min_length=1)
    product_id: UUID
    action: CartAction
    quantity: int = Field(1, ge=1)
    timestamp: datetime | None = None


class CheckoutRecord(BaseSchema):
    kind: Literal["checkout"] = "checkout"
    session_id: str = Field(..., min_length=1)
    user_id: UUID | None = None
    timestamp: datetime | None = None


class SecurityRecord(BaseSchema):
    kind: Literal["security"] = "security"
    admin_id: UUID | None = None
    user_id: UUID | None = None
    action: str = Field(..., min_length=1, max_length=100)
    ip: str | None = None
    device: str | None = None
    timestamp: datetime | None = None


EventRecord = Annotated[
    PageViewRecord | CartActionRecord | CheckoutRecord | SecurityRecord,
    Field(discriminator="kind"),
]

EventKind = Literal["page_view", "cart_action", "checkout", "security"]


# ---------------------------------------------------------------------------
# Ingestion request bodies
# ---------------------------------------------------------------------------


class PageViewCreate(BaseSchema):
    """Page view posted by a single-page app on route change."""

    page: str = Field(..., min_length=1, max_length=2048)
    referrer: str | None = None
    session_id: str | None = Field(None, alias="sessionId")
    user_agent: str | None = Field(None, alias="userAgent")
    timestamp: datetime | None = None


class CartActionCreate(BaseSchema):
    session_id: str = Field(..., min_length=1, alias="sessionId")
    product_id: UUID = Field(..., alias="productId")
    action: CartAction
    quantity: int | None = Field(None, ge=1)


class CheckoutEventCreate(BaseSchema):
    session_id: str = Field(..., min_length=1, alias="sessionId")
    user_id: UUID | None = Field(None, alias="user")


class SecurityEventCreate(BaseSchema):
    """Account action reported by the authenticated caller (login, logout, order...)."""

    action: str = Field(..., min_length=1, max_length=100)


class SessionStartResponse(BaseSchema):
    success: bool = True
    session_id: str


class SessionEndRequest(BaseSchema):
    session_id: str = Field(..., min_length=1, alias="sessionId")
