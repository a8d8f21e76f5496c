"""Append-only analytics event logs.

One table per event kind. Rows are written once and never updated; the
``session_id`` on each row refers to ``session_logs.session_id`` by value
only, so events outliving their session (or never having one) are kept.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class CartAction(str, enum.Enum):
    """Kind of cart mutation."""

    ADD = "add"
    REMOVE = "remove"
    UPDATE = "update"


class PageViewLog(Base):
    """One qualifying page navigation."""

    __tablename__ = "page_view_logs"

    session_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True, index=True)
    # Best-effort copy of the bearer token's email
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    page: Mapped[str] = mapped_column(String(2048), nullable=False)
    referrer: Mapped[str | None] = mapped_column(String(2048), nullable=True, default="")
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<PageViewLog {self.page} session={self.session_id}>"


class CartActionLog(Base):
    """One cart mutation."""

    __tablename__ = "cart_action_logs"

    session_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    action: Mapped[CartAction] = mapped_column(
        Enum(
            CartAction,
            name="cart_action",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<CartActionLog {self.action.value} x{self.quantity} session={self.session_id}>"


class CheckoutEventLog(Base):
    """Arrival at the checkout step (a funnel marker, not a purchase)."""

    __tablename__ = "checkout_event_logs"

    session_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<CheckoutEventLog session={self.session_id}>"


class SecurityLog(Base):
    """Audit trail of account actions, also read as a device fingerprint source.

    ``device`` is the composite signature ``device-type | OS version |
    Browser version``.
    """

    __tablename__ = "security_logs"

    admin_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True, index=True)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    device: Mapped[str | None] = mapped_column(String(500), nullable=True, index=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<SecurityLog {self.action} user={self.user_id}>"
