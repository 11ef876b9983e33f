"""
Authentication routes: OIDC login/callback/logout and role refresh.

Why:
    The console signs administrators in against the identity provider with
    Authorization Code + PKCE and keeps every token server-side. The session
    created at the callback owns the principal's RoleResolver; logout drops
    both.

Notes:
    Shared objects (settings, OIDC client, stores, cookie name) come from
    `request.app.state`, set up in `main`.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlparse
import asyncio
import logging

import requests
from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from backlog_admin.identity_access.oidc import OIDCClient
from backlog_admin.identity_access.role_session import Principal
from backlog_admin.identity_access.tokens import IDTokenVerificationError, verify_id_token

from ..auth_utils import cookie_opts, is_inapp_path
from ..components import Layout
from ..deps import PRIVATE_NO_STORE, build_role_resolver, current_session, require_csrf

auth_router = APIRouter(tags=["Auth"])
logger = logging.getLogger("backlog_admin.web.auth")


def _error(code: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse({"error": code}, status_code=status_code, headers=PRIVATE_NO_STORE)


def _app_base(redirect_uri: str) -> str:
    """scheme://host[:port] of the configured callback URL."""
    parsed = urlparse(redirect_uri or "")
    if parsed.scheme and parsed.netloc:
        return f"{parsed.scheme}://{parsed.netloc}"
    return "https://admin.localhost"


def _set_session_cookie(request: Request, response, value: str, *, max_age: Optional[int]) -> None:
    opts = cookie_opts(request.app.state.settings.environment)
    response.set_cookie(
        key=request.app.state.session_cookie_name,
        value=value,
        httponly=True,
        secure=opts["secure"],
        samesite=opts["samesite"],
        path="/",
        max_age=max_age,
    )


@auth_router.get("/auth/login")
async def auth_login(request: Request, redirect: Optional[str] = None):
    """
    Start the OIDC flow with PKCE and server-side state; redirect to the IdP.

    Behavior:
        - Generates code_verifier + S256 code_challenge; the state record also
          carries a fresh nonce.
        - `redirect` is kept only if it is an absolute in-app path.
    Permissions:
        Public.
    """
    code_verifier = OIDCClient.generate_code_verifier()
    code_challenge = OIDCClient.code_challenge_s256(code_verifier)
    safe_redirect = redirect if is_inapp_path(redirect) else None
    rec = request.app.state.state_store.create(code_verifier=code_verifier, redirect=safe_redirect)
    url = request.app.state.oidc.build_authorization_url(
        state=rec.state, code_challenge=code_challenge, nonce=rec.nonce
    )
    return RedirectResponse(url=url, status_code=302, headers=PRIVATE_NO_STORE)


@auth_router.get("/auth/callback")
async def auth_callback(request: Request, code: Optional[str] = None, state: Optional[str] = None):
    """
    Finish the login: exchange the code, verify the ID token, open a session.

    Behavior:
        - Unknown, expired or reused state -> 400 `invalid_code_or_state`.
        - Failed exchange -> 400 `token_exchange_failed`.
        - Missing/invalid ID token or nonce mismatch -> 400 `invalid_id_token`.
        - On success the session gets its RoleResolver, the role is resolved
          once and the browser is sent to the remembered in-app path.
    """
    if not code or not state:
        return _error("invalid_code_or_state")
    app_state = request.app.state
    rec = app_state.state_store.pop_valid(state)
    if not rec:
        return _error("invalid_code_or_state")
    try:
        tokens = await asyncio.to_thread(
            app_state.oidc.exchange_code_for_tokens, code=code, code_verifier=rec.code_verifier
        )
    except (ValueError, requests.RequestException) as exc:
        logger.warning("Token exchange failed: %s", exc.__class__.__name__)
        return _error("token_exchange_failed")

    id_token = tokens.get("id_token") if isinstance(tokens, dict) else None
    if not id_token or not isinstance(id_token, str):
        return _error("invalid_id_token")
    try:
        claims = await asyncio.to_thread(verify_id_token, id_token=id_token, cfg=app_state.oidc_config, nonce=rec.nonce)
    except IDTokenVerificationError as exc:
        logger.warning("ID token verification failed: %s", exc.code)
        return _error("invalid_id_token")

    principal = Principal.from_claims(claims)
    if not principal.sub:
        return _error("invalid_id_token")
    settings = app_state.settings
    sess = app_state.session_store.create(principal=principal, tokens=tokens, ttl_seconds=settings.session_ttl_seconds)
    sess.roles = build_role_resolver(request.app, sess)
    await sess.roles.resolve()

    resp = RedirectResponse(url=rec.redirect or "/", status_code=302, headers=PRIVATE_NO_STORE)
    max_age = settings.session_ttl_seconds if settings.prod_like else None
    _set_session_cookie(request, resp, sess.session_id, max_age=max_age)
    return resp


@auth_router.get("/auth/logout")
async def auth_logout(request: Request):
    """
    Drop the session (and with it the role scope), clear the cookie and
    redirect to the IdP end-session endpoint.

    Permissions:
        Public; logging out without a session just clears the cookie.
    """
    app_state = request.app.state
    sid = request.cookies.get(app_state.session_cookie_name)
    if sid:
        app_state.session_store.delete(sid)

    dest = f"{_app_base(app_state.oidc_config.redirect_uri)}/auth/logout/success"
    resp = RedirectResponse(
        url=app_state.oidc.build_logout_url(post_logout_redirect_uri=dest),
        status_code=302,
        headers=PRIVATE_NO_STORE,
    )
    opts = cookie_opts(app_state.settings.environment)
    resp.set_cookie(
        key=app_state.session_cookie_name,
        value="",
        httponly=True,
        secure=opts["secure"],
        samesite=opts["samesite"],
        path="/",
        expires=0,
        max_age=0,
    )
    return resp


@auth_router.get("/auth/logout/success", response_class=HTMLResponse)
async def auth_logout_success():
    content = '<p>You have been signed out.</p><p><a class="btn btn-primary" href="/auth/login">Sign in again</a></p>'
    page = Layout(title="Signed out", content=content, show_nav=False)
    return HTMLResponse(content=page.render(), headers=PRIVATE_NO_STORE)


@auth_router.post("/auth/role/refresh")
async def auth_role_refresh(request: Request):
    """
    Re-run role resolution for the current session (e.g. after an
    administrator changed this principal's role elsewhere).

    Permissions:
        Signed-in session with a valid CSRF token.
    """
    record = current_session(request)
    form = await request.form()
    require_csrf(record, form.get("csrf_token"))
    if record.roles is None:
        record.roles = build_role_resolver(request.app, record)
    await record.roles.refresh_role()
    target = str(form.get("next") or "/")
    return RedirectResponse(url=target if is_inapp_path(target) else "/", status_code=303, headers=PRIVATE_NO_STORE)
