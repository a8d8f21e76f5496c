"""Pytest configuration and fixtures for the storefront analytics test suite.

Provides:
- Test database (SQLite file via aiosqlite) with per-test row cleanup
- Mock authentication (JWT bypass) and real token minting
- Mock Redis (fakeredis)
- Disabled rate limiting
- Model factory fixtures for User, Product, Order, SessionLog and the event logs
"""

import os
import tempfile
import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any
from unittest.mock import patch
from uuid import UUID

# Point the application at a throwaway SQLite database before it is imported
_DB_PATH = Path(tempfile.gettempdir()) / f"storefront_analytics_test_{os.getpid()}.db"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-jwt-signing-only")

import fakeredis.aioredis  # noqa: E402
import jwt  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import delete  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from app.core.auth import get_current_user, get_optional_user  # noqa: E402
from app.core.config import settings  # noqa: E402
from app.core.database import get_async_session  # noqa: E402
from app.core.deps import get_db, get_redis  # noqa: E402
from app.core.rate_limit import limiter  # noqa: E402
from app.main import app  # noqa: E402
from app.models.base import Base  # noqa: E402
from app.models.events import (  # noqa: E402
    CartAction,
    CartActionLog,
    CheckoutEventLog,
    PageViewLog,
    SecurityLog,
)
from app.models.order import Order, OrderStatus  # noqa: E402
from app.models.product import Product  # noqa: E402
from app.models.session_log import SessionLog  # noqa: E402
from app.models.user import User, UserRole  # noqa: E402

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
TEST_ADMIN_ID = UUID("00000000-0000-0000-0000-0000000000ad")
TEST_ADMIN_EMAIL = "admin@example.com"
DESKTOP_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
IPHONE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_2 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.2 Mobile/15E148 Safari/604.1"
)

# ---------------------------------------------------------------------------
# Disable rate limiting globally for tests
# ---------------------------------------------------------------------------
limiter.enabled = False

# ---------------------------------------------------------------------------
# Session-scoped engine & table setup
# ---------------------------------------------------------------------------

_test_engine: Any = None
_test_session_factory: Any = None


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def _create_tables() -> AsyncGenerator[None, None]:
    """Create all tables once per test session in a fresh SQLite file.

    Uses NullPool so every session gets its own connection, as the
    middleware and the routes do in production.
    """
    global _test_engine, _test_session_factory  # noqa: PLW0603
    _test_engine = create_async_engine(
        os.environ["DATABASE_URL"],
        echo=False,
        future=True,
        poolclass=NullPool,
    )
    _test_session_factory = async_sessionmaker(
        _test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with _test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await _test_engine.dispose()
    _DB_PATH.unlink(missing_ok=True)


# ---------------------------------------------------------------------------
# Per-test database session + cleanup
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture(loop_scope="session")
async def db_session(_create_tables: None) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for test setup (factory fixtures).

    Cleanup is handled by the ``_cleanup_tables`` autouse fixture.
    """
    async with _test_session_factory() as session:
        yield session


@pytest.fixture
def session_maker(db_session: AsyncSession) -> Any:  # noqa: ARG001
    """The test session factory, for patching code that opens its own sessions."""
    return _test_session_factory


@pytest_asyncio.fixture(autouse=True)
async def _cleanup_tables() -> AsyncGenerator[None, None]:
    """Delete all rows after each test to restore a clean state."""
    yield
    if _test_engine is not None:
        async with _test_engine.begin() as conn:
            for table in reversed(Base.metadata.sorted_tables):
                await conn.execute(delete(table))


@pytest.fixture(autouse=True)
def _default_session_policy(monkeypatch: pytest.MonkeyPatch) -> None:
    """Every test starts from the lenient session policy."""
    monkeypatch.setattr(settings, "session_expiry_policy", "lenient")


# ---------------------------------------------------------------------------
# Fake Redis
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_redis() -> fakeredis.aioredis.FakeRedis:
    """Provide a fresh fakeredis instance per test."""
    return fakeredis.aioredis.FakeRedis(decode_responses=True)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


@pytest.fixture
def auth_user() -> dict[str, Any]:
    """Return the default authenticated payload (mimics a decoded admin JWT)."""
    return {
        "sub": str(TEST_ADMIN_ID),
        "email": TEST_ADMIN_EMAIL,
        "role": "admin",
    }


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Mint a real HS256 token the way the storefront auth service does."""

    def _make(
        *,
        user_id: UUID | str | None = None,
        email: str = "shopper@example.com",
        role: str = "user",
        expires_in: timedelta = timedelta(hours=1),
    ) -> str:
        payload = {
            "sub": str(user_id or uuid.uuid4()),
            "email": email,
            "role": role,
            "exp": datetime.now(UTC) + expires_in,
        }
        return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)

    return _make


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


def _override_common(fake_redis: fakeredis.aioredis.FakeRedis) -> None:
    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        async with _test_session_factory() as s:
            yield s

    async def _override_redis() -> AsyncGenerator[fakeredis.aioredis.FakeRedis, None]:
        yield fake_redis

    app.dependency_overrides[get_async_session] = _override_session
    app.dependency_overrides[get_db] = _override_session
    app.dependency_overrides[get_redis] = _override_redis


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,  # noqa: ARG001  # Ensures _create_tables runs
    fake_redis: fakeredis.aioredis.FakeRedis,
    auth_user: dict[str, Any],
) -> AsyncGenerator[AsyncClient, None]:
    """Admin-authenticated async test client with all dependencies overridden."""

    async def _override_user() -> dict[str, Any]:
        return auth_user

    async def _override_optional_user() -> dict[str, Any] | None:
        return auth_user

    _override_common(fake_redis)
    app.dependency_overrides[get_current_user] = _override_user
    app.dependency_overrides[get_optional_user] = _override_optional_user

    with patch("app.middleware.tracking.async_session_maker", _test_session_factory):
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def unauthed_client(
    db_session: AsyncSession,  # noqa: ARG001  # Ensures _create_tables runs
    fake_redis: fakeredis.aioredis.FakeRedis,
) -> AsyncGenerator[AsyncClient, None]:
    """Async test client with real token verification (DB & Redis overridden)."""
    _override_common(fake_redis)

    with patch("app.middleware.tracking.async_session_maker", _test_session_factory):
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def plain_client() -> AsyncGenerator[AsyncClient, None]:
    """Minimal async test client with NO dependency overrides."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ---------------------------------------------------------------------------
# Model Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def user_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates User instances."""

    async def _create(
        *,
        id: UUID | None = None,  # noqa: A002
        name: str = "Test Shopper",
        email: str | None = None,
        role: UserRole = UserRole.USER,
        state: str | None = None,
    ) -> User:
        user = User(
            id=id or uuid.uuid4(),
            name=name,
            email=email or f"shopper-{uuid.uuid4().hex[:8]}@example.com",
            role=role,
            state=state,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _create


@pytest.fixture
def product_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates Product instances."""

    async def _create(
        *,
        name: str = "Linen Shirt",
        price: float = 50.0,
        stock: int = 20,
        views: int = 0,
    ) -> Product:
        product = Product(name=name, price=price, stock=stock, views=views, categories=[])
        db_session.add(product)
        await db_session.commit()
        await db_session.refresh(product)
        return product

    return _create


@pytest.fixture
def order_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates Order instances."""

    async def _create(
        *,
        grand_total: float = 100.0,
        status: OrderStatus = OrderStatus.PAID,
        created_at: datetime | None = None,
        customer_email: str | None = "shopper@example.com",
        user_id: UUID | None = None,
        session_id: str | None = None,
        cart: list[dict[str, Any]] | None = None,
        campaign: str | None = None,
        campaign_spend: float | None = None,
        paid_at: datetime | None = None,
        delivered_at: datetime | None = None,
    ) -> Order:
        created_at = created_at or datetime.now(UTC)
        order = Order(
            customer={"email": customer_email} if customer_email else {},
            customer_email=customer_email,
            cart=cart or [],
            payment_reference=f"ref-{uuid.uuid4().hex[:10]}",
            subtotal=grand_total,
            delivery_fee=0,
            grand_total=grand_total,
            status=status,
            created_at=created_at,
            paid_at=paid_at or created_at,
            delivered_at=delivered_at,
            user_id=user_id,
            session_id=session_id,
            campaign=campaign,
            campaign_spend=campaign_spend,
        )
        db_session.add(order)
        await db_session.commit()
        await db_session.refresh(order)
        return order

    return _create


@pytest.fixture
def session_log_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates SessionLog rows."""

    async def _create(
        *,
        session_id: str | None = None,
        user_id: UUID | None = None,
        ip: str | None = "203.0.113.7",
        device: str | None = DESKTOP_UA,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
        last_activity: datetime | None = None,
        no_start: bool = False,
    ) -> SessionLog:
        session = SessionLog(
            session_id=session_id or str(uuid.uuid4()),
            user_id=user_id,
            ip=ip,
            device=device,
            start_time=None if no_start else (start_time or datetime.now(UTC)),
            end_time=end_time,
            last_activity=last_activity,
        )
        db_session.add(session)
        await db_session.commit()
        await db_session.refresh(session)
        return session

    return _create


@pytest.fixture
def page_view_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates PageViewLog rows."""

    async def _create(
        *,
        session_id: str,
        page: str = "/",
        timestamp: datetime | None = None,
        user_id: UUID | None = None,
        email: str | None = None,
        ip: str | None = "203.0.113.7",
        user_agent: str | None = DESKTOP_UA,
        referrer: str = "",
    ) -> PageViewLog:
        view = PageViewLog(
            session_id=session_id,
            page=page,
            timestamp=timestamp or datetime.now(UTC),
            user_id=user_id,
            email=email,
            ip=ip,
            user_agent=user_agent,
            referrer=referrer,
        )
        db_session.add(view)
        await db_session.commit()
        return view

    return _create


@pytest.fixture
def cart_action_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates CartActionLog rows."""

    async def _create(
        *,
        session_id: str,
        product_id: UUID,
        action: CartAction = CartAction.ADD,
        quantity: int = 1,
        timestamp: datetime | None = None,
    ) -> CartActionLog:
        row = CartActionLog(
            session_id=session_id,
            product_id=product_id,
            action=action,
            quantity=quantity,
            timestamp=timestamp or datetime.now(UTC),
        )
        db_session.add(row)
        await db_session.commit()
        return row

    return _create


@pytest.fixture
def checkout_event_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates CheckoutEventLog rows."""

    async def _create(
        *,
        session_id: str,
        user_id: UUID | None = None,
        timestamp: datetime | None = None,
    ) -> CheckoutEventLog:
        row = CheckoutEventLog(
            session_id=session_id,
            user_id=user_id,
            timestamp=timestamp or datetime.now(UTC),
        )
        db_session.add(row)
        await db_session.commit()
        return row

    return _create


@pytest.fixture
def security_log_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates SecurityLog rows."""

    async def _create(
        *,
        user_id: UUID | None,
        action: str = "login",
        device: str | None = "desktop | Windows 10 | Chrome 120.0",
        ip: str | None = "203.0.113.7",
        timestamp: datetime | None = None,
    ) -> SecurityLog:
        row = SecurityLog(
            user_id=user_id,
            action=action,
            device=device,
            ip=ip,
            timestamp=timestamp or datetime.now(UTC),
        )
        db_session.add(row)
        await db_session.commit()
        return row

    return _create
