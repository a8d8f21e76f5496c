"""Analytics schema: accounts, catalog, orders, sessions and event logs.

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def _event_timestamp() -> sa.Column:
    return sa.Column(
        "timestamp",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("now()"),
    )


def upgrade() -> None:
    # Create enum types
    op.execute("CREATE TYPE user_role AS ENUM ('user', 'admin')")
    op.execute("CREATE TYPE user_status AS ENUM ('active', 'suspended', 'blacklisted')")
    op.execute("CREATE TYPE promo_type AS ENUM ('discount', 'price')")
    op.execute(
        "CREATE TYPE order_status AS ENUM "
        "('paid', 'shipped', 'out_for_delivery', 'delivered', 'cancelled', 'returned')"
    )
    op.execute("CREATE TYPE cart_action AS ENUM ('add', 'remove', 'update')")

    # Accounts
    op.create_table(
        "users",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column(
            "role",
            postgresql.ENUM(name="user_role", create_type=False),
            nullable=False,
            server_default="user",
        ),
        sa.Column(
            "status",
            postgresql.ENUM(name="user_status", create_type=False),
            nullable=False,
            server_default="active",
        ),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("state", sa.String(100), nullable=True),
        sa.Column("district", sa.String(100), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_users")),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index(op.f("ix_users_role"), "users", ["role"])

    # Catalog
    op.create_table(
        "products",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("views", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("categories", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("promo_enabled", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column(
            "promo_type",
            postgresql.ENUM(name="promo_type", create_type=False),
            nullable=False,
            server_default="discount",
        ),
        sa.Column("promo_value", sa.Numeric(12, 2), nullable=True),
        sa.Column("promo_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("promo_end", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_products")),
    )

    # Orders
    op.create_table(
        "orders",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("customer", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("customer_email", sa.String(255), nullable=True),
        sa.Column("cart", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("payment_reference", sa.String(255), nullable=False),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("delivery_fee", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("grand_total", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column(
            "status",
            postgresql.ENUM(name="order_status", create_type=False),
            nullable=False,
            server_default="paid",
        ),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("shipped_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("user_id", sa.UUID(), nullable=True),
        sa.Column("session_id", sa.String(255), nullable=True),
        sa.Column("campaign", sa.String(255), nullable=True),
        sa.Column("campaign_spend", sa.Numeric(12, 2), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_orders")),
    )
    op.create_index(op.f("ix_orders_customer_email"), "orders", ["customer_email"])
    op.create_index(op.f("ix_orders_status"), "orders", ["status"])
    op.create_index(op.f("ix_orders_user_id"), "orders", ["user_id"])
    op.create_index(op.f("ix_orders_session_id"), "orders", ["session_id"])

    # Sessions
    op.create_table(
        "session_logs",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("session_id", sa.String(255), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=True),
        sa.Column("ip", sa.String(64), nullable=True),
        sa.Column("device", sa.Text(), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_activity", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_session_logs")),
    )
    op.create_index(op.f("ix_session_logs_session_id"), "session_logs", ["session_id"], unique=True)
    op.create_index(op.f("ix_session_logs_user_id"), "session_logs", ["user_id"])
    op.create_index("ix_session_logs_open_start", "session_logs", ["end_time", "start_time"])

    # Event logs
    op.create_table(
        "page_view_logs",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("session_id", sa.String(255), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("ip", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("page", sa.String(2048), nullable=False),
        sa.Column("referrer", sa.String(2048), nullable=True),
        _event_timestamp(),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_page_view_logs")),
    )
    op.create_index(op.f("ix_page_view_logs_session_id"), "page_view_logs", ["session_id"])
    op.create_index(op.f("ix_page_view_logs_user_id"), "page_view_logs", ["user_id"])
    op.create_index(op.f("ix_page_view_logs_email"), "page_view_logs", ["email"])
    op.create_index(op.f("ix_page_view_logs_timestamp"), "page_view_logs", ["timestamp"])

    op.create_table(
        "cart_action_logs",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("session_id", sa.String(255), nullable=False),
        sa.Column("product_id", sa.UUID(), nullable=False),
        sa.Column(
            "action",
            postgresql.ENUM(name="cart_action", create_type=False),
            nullable=False,
        ),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        _event_timestamp(),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_cart_action_logs")),
    )
    op.create_index(op.f("ix_cart_action_logs_session_id"), "cart_action_logs", ["session_id"])
    op.create_index(op.f("ix_cart_action_logs_product_id"), "cart_action_logs", ["product_id"])
    op.create_index(op.f("ix_cart_action_logs_timestamp"), "cart_action_logs", ["timestamp"])

    op.create_table(
        "checkout_event_logs",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("session_id", sa.String(255), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=True),
        _event_timestamp(),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_checkout_event_logs")),
    )
    op.create_index(op.f("ix_checkout_event_logs_session_id"), "checkout_event_logs", ["session_id"])
    op.create_index(op.f("ix_checkout_event_logs_timestamp"), "checkout_event_logs", ["timestamp"])

    op.create_table(
        "security_logs",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("admin_id", sa.UUID(), nullable=True),
        sa.Column("user_id", sa.UUID(), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("ip", sa.String(64), nullable=True),
        sa.Column("device", sa.String(500), nullable=True),
        _event_timestamp(),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_security_logs")),
    )
    op.create_index(op.f("ix_security_logs_user_id"), "security_logs", ["user_id"])
    op.create_index(op.f("ix_security_logs_device"), "security_logs", ["device"])
    op.create_index(op.f("ix_security_logs_timestamp"), "security_logs", ["timestamp"])


def downgrade() -> None:
    op.drop_table("security_logs")
    op.drop_table("checkout_event_logs")
    op.drop_table("cart_action_logs")
    op.drop_table("page_view_logs")
    op.drop_table("session_logs")
    op.drop_table("orders")
    op.drop_table("products")
    op.drop_table("users")

    op.execute("DROP TYPE IF EXISTS cart_action")
    op.execute("DROP TYPE IF EXISTS order_status")
    op.execute("DROP TYPE IF EXISTS promo_type")
    op.execute("DROP TYPE IF EXISTS user_status")
    op.execute("DROP TYPE IF EXISTS user_role")
