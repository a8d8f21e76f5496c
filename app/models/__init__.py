"""SQLAlchemy models."""

from app.models.base import Base
from app.models.events import (
    CartAction,
    CartActionLog,
    CheckoutEventLog,
    PageViewLog,
    SecurityLog,
)
from app.models.order import FULFILLED_STATUSES, Order, OrderStatus
from app.models.product import Product, PromoType
from app.models.session_log import SessionLog
from app.models.user import User, UserRole, UserStatus

__all__ = [
    # Base
    "Base",
    # Collaborator records (read-only here)
    "User",
    "UserRole",
    "UserStatus",
    "Product",
    "PromoType",
    "Order",
    "OrderStatus",
    "FULFILLED_STATUSES",
    # Session lifecycle
    "SessionLog",
    # Event logs
    "PageViewLog",
    "CartActionLog",
    "CartAction",
    "CheckoutEventLog",
    "SecurityLog",
]
