"""Explicit session lifecycle endpoints used by the storefront client."""

from fastapi import APIRouter, Request, Response

from app.core.config import settings
from app.core.deps import DBSession
from app.core.rate_limit import limiter
from app.middleware.tracking import persist_session_id
from app.schemas.common import SuccessResponse
from app.schemas.events import SessionEndRequest, SessionStartResponse
from app.services.ingestion_service import client_ip, device_signature, resolve_identity
from app.services.session_tracker import SessionTracker

router = APIRouter()


@router.post("/start", response_model=SessionStartResponse)
@limiter.limit(settings.ingestion_rate_limit)
async def start_session(
    request: Request,
    response: Response,
    db: DBSession,
) -> SessionStartResponse:
    """Open a session, or return the one this visitor opened moments ago.

    Repeated calls from the same identity, address and device within the
    dedupe window return the same id.
    """
    identity = resolve_identity(request)
    session_id = await SessionTracker(db).start_session(
        identity.user_id,
        client_ip(request),
        device_signature(request),
    )
    persist_session_id(response, session_id)
    return SessionStartResponse(session_id=session_id)


@router.post("/end", response_model=SuccessResponse)
@limiter.limit(settings.ingestion_rate_limit)
async def end_session(
    request: Request,  # noqa: ARG001 (slowapi reads it)
    body: SessionEndRequest,
    db: DBSession,
) -> SuccessResponse:
    """Close a session. Ending an unknown or closed session still succeeds."""
    await SessionTracker(db).end_session(body.session_id)
    return SuccessResponse()
