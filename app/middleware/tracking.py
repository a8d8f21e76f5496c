"""HTTP middleware that feeds the session tracker and page-view log.

Both middlewares open their own database session (they run outside FastAPI
dependency injection) and never let a tracking failure reach the response.
"""

import logging
from typing import Any

from fastapi.responses import JSONResponse
from starlette.requests import Request
from starlette.responses import Response

from app.core.config import settings
from app.core.database import async_session_maker
from app.core.logging_config import session_id_var
from app.services.ingestion_service import (
    SESSION_EXPIRED_STATUS,
    PageViewIngestor,
    SessionExpiredError,
    client_ip,
    device_signature,
    is_page_navigation,
    is_static_asset,
    read_session_id,
    resolve_identity,
    resolve_session_id,
    safe_touch,
)

logger = logging.getLogger(__name__)


def persist_session_id(response: Response, session_id: str) -> None:
    """Tell the client to keep sending this session id."""
    response.set_cookie(
        settings.session_cookie_name,
        session_id,
        max_age=settings.session_cookie_max_age,
        httponly=True,
        samesite="lax",
    )
    response.headers[settings.session_header_name] = session_id


def _is_session_lifecycle_path(path: str) -> bool:
    return path.startswith(f"{settings.api_v1_prefix}/session/")


async def page_view_middleware(request: Request, call_next: Any) -> Response:
    """Log page-like navigations and refresh the session they belong to."""
    if not is_page_navigation(request.method, request.url.path):
        response: Response = await call_next(request)
        return response

    session_id, generated = resolve_session_id(request)
    effective_id: str | None = session_id
    try:
        async with async_session_maker() as db:
            effective_id = await PageViewIngestor(db).record(
                session_id=session_id,
                generated=generated,
                identity=resolve_identity(request),
                ip=client_ip(request),
                user_agent=device_signature(request),
                page=request.url.path,
                referrer=request.headers.get("Referer", ""),
            )
    except SessionExpiredError:
        logger.info("Rejecting page view for expired session %s", session_id)
        return JSONResponse(status_code=SESSION_EXPIRED_STATUS, content={"detail": "Session expired"})
    except Exception:
        logger.exception("Page view tracking failed for %s", request.url.path)

    if effective_id:
        session_id_var.set(effective_id)

    response = await call_next(request)
    if effective_id and (generated or effective_id != session_id):
        persist_session_id(response, effective_id)
    return response


async def last_activity_middleware(request: Request, call_next: Any) -> Response:
    """Refresh session liveness for API and XHR traffic carrying a session id.

    Never creates a session id. Page navigations are refreshed by the
    page-view middleware instead.
    """
    path = request.url.path
    session_id = read_session_id(request)
    if (
        session_id
        and not is_static_asset(path)
        and not is_page_navigation(request.method, path)
        and not _is_session_lifecycle_path(path)
    ):
        session_id_var.set(session_id)
        try:
            async with async_session_maker() as db:
                identity = resolve_identity(request)
                await safe_touch(
                    db,
                    session_id,
                    user_id=identity.user_id,
                    ip=client_ip(request),
                    device=device_signature(request),
                )
        except Exception:
            logger.exception("Last activity tracking failed for session %s", session_id)

    response: Response = await call_next(request)
    return response
