"""
Request-scoped wiring shared by the console routes.

Why:
    Routes should not know how a backend client is built, where the token comes
    from or how the page chrome is assembled. Everything they need hangs off
    `request.app.state` (settings, OIDC client, stores, optional test
    transport) and `request.state` (session record, user context), both
    populated in `main`.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse

from backlog_admin.identity_access.role_session import RoleResolver
from backlog_admin.identity_access.stores import SessionRecord
from backlog_admin.identity_access.tokens import SessionTokenProvider
from backlog_admin.management.api import AdminApi

from .auth_utils import csrf_matches
from .components import Layout

PRIVATE_NO_STORE = {"Cache-Control": "private, no-store"}


def admin_api_for(app: FastAPI, record: SessionRecord) -> AdminApi:
    """Backend client acting with the session's (auto-renewed) access token."""
    settings = app.state.settings
    return AdminApi(
        settings.api_base_url,
        SessionTokenProvider(record, app.state.oidc),
        timeout=settings.api_timeout_seconds,
        transport=getattr(app.state, "api_transport", None),
        profile_path=settings.profile_path,
    )


def admin_api(request: Request) -> AdminApi:
    return admin_api_for(request.app, current_session(request))


def build_role_resolver(app: FastAPI, record: SessionRecord) -> RoleResolver:
    """RoleResolver scoped to `record`; each profile fetch uses a fresh client and token."""

    async def fetch_profile() -> Dict[str, Any]:
        async with admin_api_for(app, record) as api:
            return await api.get_profile()

    return RoleResolver(record.principal, fetch_profile)


def current_session(request: Request) -> SessionRecord:
    record = getattr(request.state, "session", None)
    if record is None:
        raise HTTPException(status_code=401, detail="unauthenticated", headers=PRIVATE_NO_STORE)
    return record


def user_context(record: SessionRecord) -> Dict[str, Any]:
    """Read-only view of the session for components (no tokens)."""
    principal = record.principal
    session = record.roles.current_session() if record.roles else None
    return {
        "sub": principal.sub,
        "name": principal.name,
        "email": principal.email,
        "role": session.role if session else None,
        "role_source": session.source.value if session else None,
        "role_loaded": session.loaded if session else False,
        "csrf_token": record.csrf_token,
    }


def require_csrf(record: SessionRecord, submitted: Optional[Any]) -> None:
    if not csrf_matches(record.csrf_token, None if submitted is None else str(submitted)):
        raise HTTPException(status_code=403, detail="invalid_csrf_token", headers=PRIVATE_NO_STORE)


def layout_response(
    request: Request,
    *,
    title: str,
    content: str,
    status_code: int = 200,
) -> HTMLResponse:
    """Render `content` inside the Layout for the current user.

    Personalised pages are never cached (`Cache-Control: private, no-store`).
    The user context is rebuilt here so a role changed during the request
    shows up in the navigation of the same response.
    """
    record = getattr(request.state, "session", None)
    user = user_context(record) if record else None
    layout = Layout(title=title, content=content, user=user, current_path=request.url.path)
    response = HTMLResponse(content=layout.render(), status_code=status_code)
    if user:
        response.headers.update(PRIVATE_NO_STORE)
    return response
