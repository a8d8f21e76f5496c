"""Product model for the storefront catalog."""

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, JSONType


class PromoType(str, enum.Enum):
    """How a promotion changes the price."""

    DISCOUNT = "discount"  # percentage off
    PRICE = "price"  # fixed promotional price


class Product(Base):
    """Catalog product.

    Managed by the catalog service. Analytics reads current stock and the
    cumulative view counter to surface low-stock and stagnant products.
    """

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    categories: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)

    # Promotions
    promo_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    promo_type: Mapped[PromoType] = mapped_column(
        Enum(
            PromoType,
            name="promo_type",
            values_callable=lambda x: [e.value for e in x],
        ),
        default=PromoType.DISCOUNT,
        nullable=False,
    )
    promo_value: Mapped[float | None] = mapped_column(Numeric(12, 2), nullable=True)
    promo_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    promo_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Product {self.name} (stock={self.stock})>"
