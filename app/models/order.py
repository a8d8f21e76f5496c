"""Order model (written by the checkout service, read by analytics)."""

import enum
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Enum, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, JSONType


class OrderStatus(str, enum.Enum):
    """Fulfilment status of an order."""

    PAID = "paid"
    SHIPPED = "shipped"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


# Statuses that count as a completed sale
FULFILLED_STATUSES = (OrderStatus.PAID, OrderStatus.SHIPPED, OrderStatus.DELIVERED)


class Order(Base):
    """A paid storefront order.

    ``customer`` is a snapshot taken at checkout (name, email, phone, address,
    state, district). ``customer_email`` duplicates the snapshot email so
    admin exclusion can filter on it in SQL.

    ``cart`` holds line items: ``{"id", "name", "price", "quantity",
    "promo_enabled", "promo_type", "promo_value", "promo_start", "promo_end"}``.
    """

    __tablename__ = "orders"

    customer: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    cart: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)

    # Payment and totals
    payment_reference: Mapped[str] = mapped_column(String(255), nullable=False)
    subtotal: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    delivery_fee: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    grand_total: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False, default=0)

    status: Mapped[OrderStatus] = mapped_column(
        Enum(
            OrderStatus,
            name="order_status",
            values_callable=lambda x: [e.value for e in x],
        ),
        default=OrderStatus.PAID,
        nullable=False,
        index=True,
    )
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    shipped_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Ownership and attribution
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True, index=True)
    session_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    campaign: Mapped[str | None] = mapped_column(String(255), nullable=True)
    campaign_spend: Mapped[float | None] = mapped_column(Numeric(12, 2), nullable=True)

    def __repr__(self) -> str:
        return f"<Order {self.payment_reference} ({self.status.value})>"
