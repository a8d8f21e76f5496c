"""Explicit event ingestion endpoints (page views, cart, checkout, security).

Open to anonymous shoppers except security events. Bodies are validated by
FastAPI (422 on malformed input); storage failures are logged and the
client still gets an acknowledgement.
"""

import logging

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.deps import CurrentUser, DBSession
from app.core.rate_limit import limiter
from app.middleware.tracking import persist_session_id
from app.schemas.common import SuccessResponse
from app.schemas.events import (
    CartActionCreate,
    CartActionRecord,
    CheckoutEventCreate,
    CheckoutRecord,
    PageViewCreate,
    SecurityEventCreate,
    SecurityRecord,
)
from app.services.device_classifier import build_device_signature
from app.services.event_log_store import EventLogStore
from app.services.ingestion_service import (
    SESSION_EXPIRED_STATUS,
    PageViewIngestor,
    SessionExpiredError,
    client_ip,
    device_signature,
    identity_from_claims,
    read_session_id,
    resolve_identity,
    safe_touch,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/page-views", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.ingestion_rate_limit)
async def create_page_view(
    request: Request,
    response: Response,
    body: PageViewCreate,
    db: DBSession,
) -> SuccessResponse | JSONResponse:
    """Record a client-side route change.

    Uses the same recording path as the page-view middleware, so the session
    policy and liveness refresh are identical.
    """
    supplied = body.session_id or read_session_id(request)
    try:
        session_id = await PageViewIngestor(db).record(
            session_id=supplied,
            generated=supplied is None,
            identity=resolve_identity(request),
            ip=client_ip(request),
            user_agent=body.user_agent or device_signature(request),
            page=body.page,
            referrer=body.referrer if body.referrer is not None else request.headers.get("Referer", ""),
            timestamp=body.timestamp,
        )
    except SessionExpiredError:
        return JSONResponse(status_code=SESSION_EXPIRED_STATUS, content={"detail": "Session expired"})

    if session_id and session_id != supplied:
        persist_session_id(response, session_id)
    return SuccessResponse()


@router.post("/cart-actions", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.ingestion_rate_limit)
async def create_cart_action(
    request: Request,
    body: CartActionCreate,
    db: DBSession,
) -> SuccessResponse:
    """Record an add, remove or quantity change on the cart."""
    try:
        await EventLogStore(db).append(
            CartActionRecord(
                session_id=body.session_id,
                product_id=body.product_id,
                action=body.action,
                quantity=body.quantity or 1,
            )
        )
    except Exception:
        logger.exception("Failed to log cart action for session %s", body.session_id)
        await db.rollback()

    await safe_touch(
        db,
        body.session_id,
        user_id=resolve_identity(request).user_id,
        ip=client_ip(request),
        device=device_signature(request),
    )
    return SuccessResponse()


@router.post("/checkout-events", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.ingestion_rate_limit)
async def create_checkout_event(
    request: Request,
    body: CheckoutEventCreate,
    db: DBSession,
) -> SuccessResponse:
    """Record that a session reached the checkout step."""
    user_id = body.user_id or resolve_identity(request).user_id
    try:
        await EventLogStore(db).append(CheckoutRecord(session_id=body.session_id, user_id=user_id))
    except Exception:
        logger.exception("Failed to log checkout event for session %s", body.session_id)
        await db.rollback()

    await safe_touch(
        db,
        body.session_id,
        user_id=user_id,
        ip=client_ip(request),
        device=device_signature(request),
    )
    return SuccessResponse()


@router.post("/security-events", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.ingestion_rate_limit)
async def create_security_event(
    request: Request,
    body: SecurityEventCreate,
    user: CurrentUser,
    db: DBSession,
) -> SuccessResponse:
    """Record an account action with the caller's address and device signature."""
    identity = identity_from_claims(user)
    try:
        await EventLogStore(db).append(
            SecurityRecord(
                user_id=identity.user_id,
                action=body.action,
                ip=client_ip(request),
                device=build_device_signature(request.headers.get("User-Agent")),
            )
        )
    except Exception:
        logger.exception("Failed to log security event %s", body.action)
        await db.rollback()
    return SuccessResponse()
