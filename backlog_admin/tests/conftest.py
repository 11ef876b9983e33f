"""
Pytest configuration for the admin console tests.

Why: Force AnyIO to use the asyncio backend, give every test a fresh set of
console stores, and provide a scriptable fake REST backend so no test ever
reaches the network.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from backlog_admin.identity_access.role_session import Principal
from backlog_admin.identity_access.stores import SessionStore, StateStore
from backlog_admin.web import main

Reply = Callable[[httpx.Request], httpx.Response]


def reply(status: int = 200, json: Any = None, **kwargs: Any) -> Reply:
    """Build a fresh httpx.Response per request (responses are single-use)."""

    def _build(request: httpx.Request) -> httpx.Response:
        if json is None:
            return httpx.Response(status, **kwargs)
        return httpx.Response(status, json=json, **kwargs)

    return _build


class FakeBackend:
    """Scriptable REST backend behind `httpx.MockTransport`.

    `on(method, path, *replies)` queues replies for a route; the last one is
    repeated once the queue is down to it. Unknown routes answer 404.
    """

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], List[Reply]] = {}
        self.requests: List[httpx.Request] = []

    def on(self, method: str, path: str, *replies: Reply) -> "FakeBackend":
        self.routes[(method.upper(), path)] = list(replies)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": "not found"})
        build = queue.pop(0) if len(queue) > 1 else queue[0]
        return build(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls(self, method: str, path: Optional[str] = None) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method.upper() and (path is None or r.url.path == path)
        ]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture(autouse=True)
def _reset_console_state():
    """Fresh stores per test; the default backend transport answers 503."""
    main.app.state.state_store = StateStore()
    main.app.state.session_store = SessionStore()
    main.app.state.api_transport = httpx.MockTransport(
        lambda request: httpx.Response(503, json={"message": "backend offline"})
    )
    yield
    main.app.state.api_transport = None


@pytest.fixture
def sign_in(backend: FakeBackend):
    """Create a console session whose profile reports `role`.

    The backend fake is wired into the app; the session's role is resolved by
    the auth middleware on the first request.
    """

    def _sign_in(role: str = "super_admin", *, sub: str = "kc-admin", name: str = "Ada Admin", email: str = "ada@example.org"):
        backend.on("GET", "/api/users/profile", reply(json={"user": {"role": role, "email": email}}))
        main.app.state.api_transport = backend.transport
        principal = Principal(sub=sub, email=email, name=name)
        return main.app.state.session_store.create(principal=principal, tokens={"access_token": "tok-admin"})

    return _sign_in


@pytest.fixture
def console_client():
    """AsyncClient factory bound to the console app, optionally with a session cookie."""

    def _client(session_id: Optional[str] = None) -> httpx.AsyncClient:
        client = httpx.AsyncClient(
            transport=httpx.ASGITransport(app=main.app),
            base_url="http://test",
            follow_redirects=False,
        )
        if session_id:
            client.cookies.set(main.SESSION_COOKIE_NAME, session_id)
        return client

    return _client
