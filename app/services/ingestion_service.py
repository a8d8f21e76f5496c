"""Request-side event ingestion: identity, session and page-view recording.

Everything here follows one contract: tracking never fails the request it
observes. Errors are logged and swallowed. The only signal that can reach a
client is ``SessionExpiredError`` under the strict session policy.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request

from app.core.auth import decode_bearer_quietly
from app.core.config import settings
from app.core.rate_limit import get_client_ip
from app.schemas.events import PageViewRecord
from app.services.event_log_store import EventLogStore
from app.services.session_tracker import SessionTracker, generate_session_id

logger = logging.getLogger(__name__)

# Non-standard "login time-out" status used to ask the client to restart its session
SESSION_EXPIRED_STATUS = 440

SAFE_METHODS = frozenset({"GET", "HEAD"})
STATIC_ASSET_RE = re.compile(
    r"\.(js|mjs|css|map|png|jpe?g|gif|svg|webp|ico|woff2?|ttf|txt)$", re.IGNORECASE
)


class SessionExpiredError(Exception):
    """A client-supplied session id is unknown or already closed."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session expired: {session_id}")
        self.session_id = session_id


@dataclass(frozen=True)
class Identity:
    """Who is behind a request, as far as tracking can tell."""

    user_id: UUID | None = None
    email: str | None = None
    role: str | None = None

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None and self.email is None


ANONYMOUS = Identity()


def _coerce_uuid(value: Any) -> UUID | None:
    if value is None:
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


def identity_from_claims(claims: dict[str, Any] | None) -> Identity:
    """Build an identity from decoded token claims (``sub``/``_id``/``id``)."""
    if not claims:
        return ANONYMOUS
    raw_id = claims.get("sub") or claims.get("_id") or claims.get("id")
    return Identity(
        user_id=_coerce_uuid(raw_id),
        email=claims.get("email"),
        role=claims.get("role"),
    )


def resolve_identity(request: Request) -> Identity:
    """Prefer an already-authenticated principal, else decode the bearer token.

    A missing or invalid token means the visitor is anonymous.
    """
    user = getattr(request.state, "user", None)
    principal = identity_from_claims(user if isinstance(user, dict) else None)
    if principal.email:
        return principal

    decoded = identity_from_claims(decode_bearer_quietly(request.headers.get("Authorization")))
    return Identity(
        user_id=decoded.user_id or principal.user_id,
        email=decoded.email,
        role=decoded.role or principal.role,
    )


def read_session_id(request: Request) -> str | None:
    """Session id from the cookie or the custom header, interchangeably."""
    return (
        request.cookies.get(settings.session_cookie_name)
        or request.headers.get(settings.session_header_name)
        or None
    )


def resolve_session_id(request: Request) -> tuple[str, bool]:
    """Return ``(session_id, generated)``; a new id must be persisted by the client."""
    session_id = read_session_id(request)
    if session_id:
        return session_id, False
    return generate_session_id(), True


def client_ip(request: Request) -> str:
    return get_client_ip(request)


def device_signature(request: Request) -> str:
    """Raw client device string (the user agent)."""
    return request.headers.get("User-Agent") or "Unknown"


def is_static_asset(path: str) -> bool:
    return bool(STATIC_ASSET_RE.search(path))


def is_page_navigation(method: str, path: str) -> bool:
    """A safe read of a page: not an API call and not a static asset."""
    if method.upper() not in SAFE_METHODS:
        return False
    if path == "/api" or path.startswith("/api/"):
        return False
    return not is_static_asset(path)


async def ensure_session_open(tracker: SessionTracker, session_id: str) -> bool:
    """Apply the session validity policy to a client-supplied session id.

    Returns whether the session is open. Under the ``strict`` policy a
    missing or closed session raises ``SessionExpiredError``; under
    ``lenient`` the caller keeps logging.
    """
    is_open = await tracker.is_open(session_id)
    if not is_open and settings.session_expiry_policy == "strict":
        raise SessionExpiredError(session_id)
    return is_open


class PageViewIngestor:
    """The single recording path for page views (middleware and API)."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.tracker = SessionTracker(db)
        self.store = EventLogStore(db)

    async def record(
        self,
        *,
        session_id: str | None,
        generated: bool,
        identity: Identity,
        ip: str | None,
        user_agent: str | None,
        page: str,
        referrer: str | None = None,
        timestamp: datetime | None = None,
    ) -> str | None:
        """Record one page view and refresh session liveness.

        Returns the effective session id (a freshly generated id may be
        swapped for a recent duplicate session), or None if no session could
        be attached.

        Raises:
            SessionExpiredError: Only under the strict policy.
        """
        try:
            if generated or not session_id:
                session_id = await self.tracker.start_session(
                    identity.user_id, ip, user_agent, session_id=session_id
                )
            else:
                await ensure_session_open(self.tracker, session_id)
        except SessionExpiredError:
            raise
        except Exception:
            logger.exception("Session lookup failed for page view on %s", page)
            await self.db.rollback()
            if not session_id:
                return None

        try:
            await self.store.append(
                PageViewRecord(
                    session_id=session_id,
                    user_id=identity.user_id,
                    email=identity.email,
                    ip=ip,
                    user_agent=user_agent,
                    page=page,
                    referrer=referrer or "",
                    timestamp=timestamp,
                )
            )
        except Exception:
            logger.exception("Failed to log page view %s for session %s", page, session_id)
            await self.db.rollback()

        await safe_touch(
            self.db,
            session_id,
            user_id=identity.user_id,
            ip=ip,
            device=user_agent,
        )
        return session_id


async def safe_touch(
    db: AsyncSession,
    session_id: str,
    *,
    user_id: UUID | None = None,
    ip: str | None = None,
    device: str | None = None,
) -> None:
    """Refresh session liveness, logging instead of raising on failure."""
    try:
        await SessionTracker(db).touch(session_id, user_id=user_id, ip=ip, device=device)
    except Exception:
        logger.exception("Failed to refresh last activity for session %s", session_id)
        await db.rollback()
