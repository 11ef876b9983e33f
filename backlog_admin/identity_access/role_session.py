"""
Role resolution for the signed-in principal.

Why:
    Every management screen needs to know "which role does the current
    principal have". The backend profile is authoritative; the identity
    provider's metadata is a fallback so the console stays usable when the
    profile endpoint is down.

Design:
    - `RoleResolver` is owned by one authenticated session (see
      `stores.SessionRecord.roles`): created at login, dropped at logout. It
      is passed explicitly to the views that need it, never kept in a global.
    - The metadata fallback is an ordered tuple of lookup strategies; the first
      strategy that yields a role wins.
    - No retries. A failed profile fetch is logged and degrades to metadata.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence
import logging

from .domain import DEFAULT_ROLE

logger = logging.getLogger("backlog_admin.identity_access.roles")


@dataclass(frozen=True)
class Principal:
    """Authenticated actor as known from the identity provider's claims."""

    sub: str
    email: str = ""
    name: str = ""
    public_metadata: Mapping[str, Any] = field(default_factory=dict)
    unsafe_metadata: Mapping[str, Any] = field(default_factory=dict)
    claims: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> "Principal":
        def _mapping(key: str) -> Mapping[str, Any]:
            value = claims.get(key)
            return value if isinstance(value, Mapping) else {}

        name = claims.get("name") or claims.get("preferred_username") or ""
        return cls(
            sub=str(claims.get("sub") or ""),
            email=str(claims.get("email") or ""),
            name=str(name),
            public_metadata=_mapping("public_metadata"),
            unsafe_metadata=_mapping("unsafe_metadata"),
            claims=dict(claims),
        )


class RoleSource(str, Enum):
    SERVER = "server"
    FALLBACK = "fallback-metadata"
    NONE = "none"


@dataclass(frozen=True)
class RoleSession:
    role: Optional[str]
    source: RoleSource
    loaded: bool
    server_role: Optional[str] = None


# Initial state before the first resolution finished.
PENDING = RoleSession(role=None, source=RoleSource.NONE, loaded=False)


@dataclass(frozen=True)
class MetadataRoleLookup:
    """Read a role from one location of the principal's identity metadata."""

    name: str
    read: Callable[[Principal], Any]

    def __call__(self, principal: Principal) -> Optional[str]:
        try:
            value = self.read(principal)
        except (AttributeError, KeyError, TypeError):
            return None
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None


DEFAULT_ROLE_LOOKUPS: Sequence[MetadataRoleLookup] = (
    MetadataRoleLookup("public_metadata", lambda p: p.public_metadata.get("role")),
    MetadataRoleLookup("unsafe_metadata", lambda p: p.unsafe_metadata.get("role")),
    MetadataRoleLookup("role_claim", lambda p: p.claims.get("role")),
)


def role_from_metadata(principal: Principal, lookups: Sequence[MetadataRoleLookup] = DEFAULT_ROLE_LOOKUPS) -> str:
    """First non-empty role from the lookup chain, or DEFAULT_ROLE."""
    for lookup in lookups:
        role = lookup(principal)
        if role:
            return role
    return DEFAULT_ROLE


def _server_role(profile: Any) -> Optional[str]:
    if not isinstance(profile, Mapping):
        return None
    user = profile.get("user")
    if not isinstance(user, Mapping):
        return None
    role = user.get("role")
    return role if isinstance(role, str) and role else None


ProfileFetcher = Callable[[], Awaitable[Mapping[str, Any]]]


class RoleResolver:
    """Produce and hold the RoleSession of one authenticated session.

    Parameters:
        principal: The signed-in principal, or None when nobody is signed in.
        fetch_profile: Async callable returning the backend profile body
            (`{"user": {"role": ...}}`). It obtains its own fresh bearer token.
        lookups: Metadata fallback chain (defaults to DEFAULT_ROLE_LOOKUPS).
    """

    def __init__(
        self,
        principal: Optional[Principal],
        fetch_profile: ProfileFetcher,
        *,
        lookups: Sequence[MetadataRoleLookup] = DEFAULT_ROLE_LOOKUPS,
    ) -> None:
        self.principal = principal
        self._fetch_profile = fetch_profile
        self._lookups = tuple(lookups)
        self._session = PENDING

    def current_session(self) -> RoleSession:
        return self._session

    async def resolve(self) -> RoleSession:
        """Run the resolution steps and store the resulting session."""
        if self.principal is None:
            self._session = RoleSession(role=None, source=RoleSource.NONE, loaded=True)
            return self._session

        try:
            profile = await self._fetch_profile()
        except Exception as exc:  # any failure degrades to metadata
            logger.warning("Profile role unavailable, using identity metadata: %s", exc.__class__.__name__)
        else:
            role = _server_role(profile)
            if role:
                self._session = RoleSession(role=role, source=RoleSource.SERVER, loaded=True, server_role=role)
                return self._session

        role = role_from_metadata(self.principal, self._lookups)
        self._session = RoleSession(
            role=role,
            source=RoleSource.FALLBACK,
            loaded=True,
            server_role=self._session.server_role,
        )
        return self._session

    def update_role(self, new_role: str) -> RoleSession:
        """Apply a role already changed on the server without a refetch."""
        self._session = replace(self._session, role=new_role, server_role=new_role)
        return self._session

    async def refresh_role(self) -> RoleSession:
        """Re-run resolution. While it runs, `loaded` is False but the old role stays readable."""
        if self.principal is None:
            return self._session
        self._session = replace(self._session, loaded=False)
        return await self.resolve()


__all__ = [
    "Principal",
    "RoleSource",
    "RoleSession",
    "PENDING",
    "MetadataRoleLookup",
    "DEFAULT_ROLE_LOOKUPS",
    "role_from_metadata",
    "RoleResolver",
]
