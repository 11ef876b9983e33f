"""
RoleResolver: backend profile first, identity metadata as fallback.

Scenarios
- Server role wins and is marked `server`.
- Profile failure degrades to public metadata, then unsafe metadata, then
  the role claim, then `user`.
- No principal: no backend call, `none` source, loaded.
- update_role and refresh_role.
"""

from __future__ import annotations

import pytest

from backlog_admin.identity_access.role_session import (
    PENDING,
    MetadataRoleLookup,
    Principal,
    RoleResolver,
    RoleSource,
    role_from_metadata,
)
from backlog_admin.management.api import TransportError

pytestmark = pytest.mark.anyio("asyncio")


class _Profile:
    """Async profile fetcher that counts calls and returns or raises."""

    def __init__(self, result=None, error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


def test_resolver_starts_pending():
    resolver = RoleResolver(Principal(sub="u1"), _Profile({}))
    assert resolver.current_session() == PENDING
    assert resolver.current_session().loaded is False


async def test_server_role_wins():
    fetch = _Profile({"user": {"role": "product_owner"}})
    principal = Principal(sub="u1", public_metadata={"role": "user"})

    session = await RoleResolver(principal, fetch).resolve()

    assert session.role == "product_owner"
    assert session.source is RoleSource.SERVER
    assert session.server_role == "product_owner"
    assert session.loaded is True
    assert fetch.calls == 1


async def test_profile_failure_falls_back_to_public_metadata():
    fetch = _Profile(error=TransportError("timeout"))
    principal = Principal(sub="u1", public_metadata={"role": "scrum_master"})

    session = await RoleResolver(principal, fetch).resolve()

    assert session.role == "scrum_master"
    assert session.source is RoleSource.FALLBACK
    assert session.loaded is True


async def test_profile_without_role_uses_unsafe_metadata_then_claims():
    principal = Principal(sub="u1", unsafe_metadata={"role": "developers"}, claims={"role": "super_admin"})
    session = await RoleResolver(principal, _Profile({"user": {}})).resolve()
    assert (session.role, session.source) == ("developers", RoleSource.FALLBACK)

    principal = Principal(sub="u1", claims={"role": "super_admin"})
    session = await RoleResolver(principal, _Profile({"user": {"role": ""}})).resolve()
    assert session.role == "super_admin"


async def test_no_metadata_defaults_to_user():
    session = await RoleResolver(Principal(sub="u1"), _Profile(error=RuntimeError("down"))).resolve()
    assert session.role == "user"
    assert session.source is RoleSource.FALLBACK


async def test_no_principal_makes_no_call():
    fetch = _Profile({"user": {"role": "super_admin"}})

    session = await RoleResolver(None, fetch).resolve()

    assert fetch.calls == 0
    assert session.role is None
    assert session.source is RoleSource.NONE
    assert session.loaded is True


async def test_update_role_applies_locally_without_fetch():
    fetch = _Profile({"user": {"role": "user"}})
    resolver = RoleResolver(Principal(sub="u1"), fetch)
    await resolver.resolve()

    session = resolver.update_role("product_owner")

    assert session.role == "product_owner"
    assert session.server_role == "product_owner"
    assert fetch.calls == 1


async def test_refresh_role_marks_unloaded_while_fetching():
    seen = {}
    resolver = None

    async def fetch():
        seen["loaded"] = resolver.current_session().loaded
        seen["role"] = resolver.current_session().role
        return {"user": {"role": "super_admin"}}

    resolver = RoleResolver(Principal(sub="u1"), fetch)
    resolver.update_role("user")

    session = await resolver.refresh_role()

    assert seen == {"loaded": False, "role": "user"}
    assert session.role == "super_admin" and session.loaded is True


async def test_refresh_role_without_principal_is_noop():
    fetch = _Profile({"user": {"role": "super_admin"}})
    resolver = RoleResolver(None, fetch)
    await resolver.refresh_role()
    assert fetch.calls == 0


def test_custom_lookup_chain_order():
    principal = Principal(sub="u1", public_metadata={"role": "user"}, claims={"team_role": "scrum_master"})
    lookups = (MetadataRoleLookup("team_role", lambda p: p.claims.get("team_role")),)
    assert role_from_metadata(principal, lookups) == "scrum_master"


def test_principal_from_claims():
    principal = Principal.from_claims(
        {"sub": "kc-1", "email": "a@x.org", "preferred_username": "ana", "public_metadata": {"role": "developers"}}
    )
    assert principal.sub == "kc-1"
    assert principal.name == "ana"
    assert principal.public_metadata == {"role": "developers"}
    assert principal.unsafe_metadata == {}
