"Backlog admin console"
from __future__ import annotations

from pathlib import Path
from typing import Optional
from urllib.parse import urlencode
import logging

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles

from backlog_admin.identity_access.oidc import OIDCClient
from backlog_admin.identity_access.role_session import RoleSource
from backlog_admin.identity_access.stores import SessionRecord, SessionStore, StateStore

from .auth_utils import is_inapp_path
from .components import Navigation, RoleBadge
from .components.base import Component
from .config import AdminSettings, ensure_secure_config_on_startup, load_env
from .deps import PRIVATE_NO_STORE, build_role_resolver, layout_response, user_context
from .routes.auth import auth_router
from .routes.collaborators import collaborators_router
from .routes.products import products_router

load_env()

# --- App & Settings Setup -------------------------------------------------------

logger = logging.getLogger("backlog_admin.web")
SETTINGS = AdminSettings.from_env()
ensure_secure_config_on_startup(SETTINGS)

SESSION_COOKIE_NAME = "backlog_admin_session"
OIDC_CFG = SETTINGS.oidc_config()
OIDC = OIDCClient(OIDC_CFG)
STATE_STORE = StateStore()
SESSION_STORE = SessionStore()

app = FastAPI(title="Backlog Admin", description="Collaborator and product administration", version="0.1.0")

# Routes read shared objects from app.state; tests swap stores or inject an
# httpx transport for the backend here.
app.state.settings = SETTINGS
app.state.oidc_config = OIDC_CFG
app.state.oidc = OIDC
app.state.state_store = STATE_STORE
app.state.session_store = SESSION_STORE
app.state.session_cookie_name = SESSION_COOKIE_NAME
app.state.api_transport = None

static_dir = Path(__file__).parent / "static"
app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")

app.include_router(auth_router)
app.include_router(collaborators_router)
app.include_router(products_router)

# --- Auth Middleware ------------------------------------------------------------


def _is_public_path(path: str) -> bool:
    return path.startswith(("/auth/", "/static/")) or path in ("/health", "/favicon.ico")


def _session_from_cookie(request: Request) -> Optional[SessionRecord]:
    sid = request.cookies.get(request.app.state.session_cookie_name)
    if not sid:
        return None
    return request.app.state.session_store.get(sid)


@app.middleware("http")
async def auth_enforcement(request: Request, call_next):
    """Attach the session (if any) and keep private pages behind login.

    A session without a RoleResolver gets one here and is resolved once; after
    that the role is only re-resolved on explicit refresh.
    """
    path = request.url.path
    rec = _session_from_cookie(request)
    request.state.session = rec
    if rec is not None and rec.roles is None:
        rec.roles = build_role_resolver(request.app, rec)
        session = await rec.roles.resolve()
        logger.debug("Session role resolved (source=%s)", session.source.value)

    if rec is None and not _is_public_path(path):
        if request.method in ("GET", "HEAD"):
            target = "/auth/login"
            if is_inapp_path(path) and path != "/":
                target = f"{target}?{urlencode({'redirect': path})}"
            return RedirectResponse(url=target, status_code=302, headers=PRIVATE_NO_STORE)
        return JSONResponse({"error": "unauthenticated"}, status_code=401, headers=PRIVATE_NO_STORE)

    if rec is not None:
        request.state.user = user_context(rec)
    return await call_next(request)


# --- Security Headers Middleware ----------------------------------------------


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault(
        "Content-Security-Policy",
        "default-src 'self'; script-src 'self'; style-src 'self'; img-src 'self' data:; form-action 'self';",
    )
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


# --- Pages ----------------------------------------------------------------------

_SOURCE_TEXT = {
    RoleSource.SERVER.value: "Resolved from your backend profile.",
    RoleSource.FALLBACK.value: "The backend profile was unavailable; this role comes from your identity metadata.",
    RoleSource.NONE.value: "No role resolved yet.",
}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/", response_class=HTMLResponse)
async def home(request: Request):
    """Who am I and what can I manage from here."""
    user = user_context(request.state.session)
    if user["role_loaded"] and user["role"]:
        role_html = RoleBadge(user["role"]).render()
    else:
        role_html = '<span class="badge badge--neutral">Loading role</span>'
    source = _SOURCE_TEXT.get(user["role_source"] or RoleSource.NONE.value, "")
    links = [
        f'<li><a href="{href}">{Component.escape(text)}</a></li>'
        for href, text in Navigation(user, "/").nav_items()
        if href != "/"
    ]
    sections = (
        f'<ul class="section-links">{"".join(links)}</ul>'
        if links
        else '<p class="text-muted">Your role has no management screens.</p>'
    )
    content = f"""
    <section class="profile-card">
        <p><strong>{Component.escape(user["name"] or user["email"])}</strong></p>
        <p class="text-muted">{Component.escape(user["email"])}</p>
        <p>Role: {role_html}</p>
        <p class="text-muted" data-role-source="{Component.escape(user["role_source"])}">{Component.escape(source)}</p>
    </section>
    {sections}
    """
    return layout_response(request, title="Home", content=content)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("backlog_admin.web.main:app", host="0.0.0.0", port=8000, reload=not SETTINGS.prod_like)
