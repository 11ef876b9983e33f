"""
In-memory stores for the admin console: StateStore and SessionStore.

Why: Keep login state (PKCE verifier, nonce) and sessions server-side. The
browser only carries an opaque session id. A session record also scopes the
principal's RoleResolver: it is attached when the session is created and goes
away with `delete()`.

Security: Tokens stay on the server. Records expire; expired records are
dropped on access.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Mapping, Optional
import secrets
import time

from .role_session import Principal

if TYPE_CHECKING:  # pragma: no cover
    from .role_session import RoleResolver


def _now() -> int:
    return int(time.time())


@dataclass
class StateRecord:
    state: str
    code_verifier: str
    nonce: str
    redirect: Optional[str]
    expires_at: int


class StateStore:
    """Pending logins keyed by `state`. Abandoned logins are purged on the next `create()`."""

    def __init__(self):
        self._data: Dict[str, StateRecord] = {}

    def _purge_expired(self, now: int) -> None:
        for key in [key for key, rec in self._data.items() if rec.expires_at < now]:
            del self._data[key]

    def create(self, *, code_verifier: str, ttl_seconds: int = 900, redirect: Optional[str] = None) -> StateRecord:
        now = _now()
        self._purge_expired(now)
        rec = StateRecord(
            state=secrets.token_urlsafe(24),
            code_verifier=code_verifier,
            nonce=secrets.token_urlsafe(16),
            redirect=redirect,
            expires_at=now + ttl_seconds,
        )
        self._data[rec.state] = rec
        return rec

    def pop_valid(self, state: str) -> Optional[StateRecord]:
        """Single use: the record is removed whether or not it is still valid."""
        rec = self._data.pop(state, None)
        if not rec or rec.expires_at < _now():
            return None
        return rec


@dataclass
class SessionRecord:
    session_id: str
    principal: Principal
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    access_expires_at: Optional[float] = None
    expires_at: Optional[int] = None
    csrf_token: str = field(default_factory=lambda: secrets.token_urlsafe(24))
    roles: Optional["RoleResolver"] = None

    def apply_tokens(self, tokens: Mapping[str, object]) -> None:
        """Store a token endpoint response (access/refresh token and expiry)."""
        access = tokens.get("access_token")
        if isinstance(access, str) and access:
            self.access_token = access
        refresh = tokens.get("refresh_token")
        if isinstance(refresh, str) and refresh:
            self.refresh_token = refresh
        expires_in = tokens.get("expires_in")
        if isinstance(expires_in, (int, float)):
            self.access_expires_at = time.time() + float(expires_in)


class SessionStore:
    def __init__(self):
        self._data: Dict[str, SessionRecord] = {}

    def create(
        self,
        *,
        principal: Principal,
        tokens: Optional[Mapping[str, object]] = None,
        ttl_seconds: int = 3600,
    ) -> SessionRecord:
        rec = SessionRecord(
            session_id=secrets.token_urlsafe(24),
            principal=principal,
            expires_at=_now() + ttl_seconds,
        )
        if tokens:
            rec.apply_tokens(tokens)
        self._data[rec.session_id] = rec
        return rec

    def get(self, session_id: str) -> Optional[SessionRecord]:
        rec = self._data.get(session_id)
        if not rec:
            return None
        if rec.expires_at and rec.expires_at < _now():
            self._data.pop(session_id, None)
            return None
        return rec

    def delete(self, session_id: str) -> None:
        rec = self._data.pop(session_id, None)
        if rec is not None:
            rec.roles = None
