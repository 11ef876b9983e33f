"""
CollaboratorsController: list/search/filter and role changes.

Scenarios
- The query drops `role=all` and blank search.
- A failed list leaves no items, an error notice and loading cleared.
- A confirmed role change sends one PUT and exactly one relist before the
  success notice; a declined one sends nothing. A failed relist keeps its
  error in the list state but the change is still reported as done.
- Responses of superseded or abandoned requests are ignored; a closed
  controller starts no new list.
"""

from __future__ import annotations

import asyncio
import json
from typing import List

import pytest

from backlog_admin.identity_access.tokens import StaticTokenProvider
from backlog_admin.management.api import AdminApi, HttpStatusError
from backlog_admin.management.collaborators import Collaborator, CollaboratorsController
from backlog_admin.management.controller import build_query
from backlog_admin.management.notices import NoticeKind

from conftest import FakeBackend, reply

pytestmark = pytest.mark.anyio("asyncio")

USERS = [
    {"_id": "u1", "nombre_negocio": "Ana", "email": "ana@x.org", "role": "developers", "is_active": True, "clerk_id": "kc-ana"},
    {"_id": "u2", "nombre_negocio": "", "email": "bo@x.org", "role": "user", "is_active": False},
]


def _controller(backend: FakeBackend, **kwargs) -> CollaboratorsController:
    api = AdminApi("http://api.test", StaticTokenProvider("tok"), transport=backend.transport)
    return CollaboratorsController(api, **kwargs)


def test_build_query_drops_all_and_blanks():
    assert build_query({"search": "", "role": "all"}) == {}
    assert build_query({"search": " ana ", "role": "developers"}) == {"search": "ana", "role": "developers"}
    assert build_query({"role": "ALL", "search": None}) == {}


def test_collaborator_from_api_mapping():
    ana = Collaborator.from_api(USERS[0])
    assert (ana.id, ana.name, ana.role, ana.active, ana.external_id) == ("u1", "Ana", "developers", True, "kc-ana")
    nameless = Collaborator.from_api(USERS[1])
    assert nameless.display_name == "No name"
    assert nameless.initial == "B"


async def test_list_without_filters_sends_no_params(backend: FakeBackend):
    backend.on("GET", "/api/admin/users", reply(json={"users": USERS}))
    controller = _controller(backend)

    state = await controller.list({"search": "", "role": "all"})

    assert [c.id for c in state.items] == ["u1", "u2"]
    assert state.loading is False
    assert state.notice is None
    assert dict(backend.requests[0].url.params) == {}


async def test_list_with_role_filter(backend: FakeBackend):
    backend.on("GET", "/api/admin/users", reply(json={"users": USERS[:1]}))
    controller = _controller(backend)

    await controller.list({"role": "developers", "search": "an"})

    assert dict(backend.requests[0].url.params) == {"role": "developers", "search": "an"}
    assert controller.current_filters() == {"search": "an", "role": "developers"}


async def test_failed_list_clears_items_and_loading(backend: FakeBackend):
    backend.on(
        "GET",
        "/api/admin/users",
        reply(json={"users": USERS}),
        reply(500, json={"message": "db down"}),
    )
    controller = _controller(backend)
    await controller.list()

    state = await controller.list()

    assert state.items == []
    assert state.loading is False
    assert state.notice.kind is NoticeKind.ERROR
    assert state.error == "Could not load collaborators: db down"


async def test_change_role_relists_once_then_success(backend: FakeBackend):
    backend.on("GET", "/api/admin/users", reply(json={"users": USERS}))
    backend.on("PUT", "/api/admin/users/u2/role", reply(json={"message": "Rol actualizado"}))
    prompts: List[str] = []
    controller = _controller(backend, confirm=lambda p: prompts.append(p) or True)

    notice = await controller.change_role("u2", "scrum_master")

    assert prompts == ["Change the role to Scrum Master?"]
    assert [r.method for r in backend.requests] == ["PUT", "GET"]
    assert notice.kind is NoticeKind.SUCCESS
    assert notice.message == "Rol actualizado"
    assert controller.state.notice == notice
    assert len(controller.state.items) == 2


async def test_change_role_default_message_without_body(backend: FakeBackend):
    backend.on("GET", "/api/admin/users", reply(json={"users": USERS}))
    backend.on("PUT", "/api/admin/users/u1/role", reply(204))
    controller = _controller(backend, confirm=lambda p: True)

    notice = await controller.change_role("u1", "developer")

    assert notice.message == "Role updated."
    assert json.loads(backend.calls("PUT")[0].content) == {"role": "developers"}


async def test_declined_confirmation_sends_nothing(backend: FakeBackend):
    controller = _controller(backend, confirm=lambda p: False)

    assert await controller.change_role("u1", "super_admin") is None
    assert backend.requests == []


async def test_default_confirm_declines(backend: FakeBackend):
    controller = _controller(backend)
    assert await controller.change_role("u1", "super_admin") is None
    assert backend.requests == []


async def test_unknown_role_rejected_locally(backend: FakeBackend):
    controller = _controller(backend, confirm=lambda p: True)

    notice = await controller.change_role("u1", "overlord")

    assert notice.is_error
    assert notice.message == 'Unknown role "overlord".'
    assert backend.requests == []


async def test_failed_role_change_keeps_items_and_shows_message(backend: FakeBackend):
    backend.on("GET", "/api/admin/users", reply(json={"users": USERS}))
    backend.on("PUT", "/api/admin/users/u1/role", reply(403, json={"message": "Solo super admin"}))
    controller = _controller(backend, confirm=lambda p: True)
    await controller.list()

    notice = await controller.change_role("u1", "super_admin")

    assert notice.is_error and notice.message == "Solo super admin"
    assert [c.id for c in controller.state.items] == ["u1", "u2"]
    assert len(backend.calls("GET")) == 1


async def test_failed_role_change_without_message_uses_fallback(backend: FakeBackend):
    backend.on("PUT", "/api/admin/users/u1/role", reply(502, text="bad gateway"))
    controller = _controller(backend, confirm=lambda p: True)

    notice = await controller.change_role("u1", "user")

    assert notice.message == "Could not update role."


async def test_relist_failure_after_change_still_reports_the_change(backend: FakeBackend):
    backend.on("PUT", "/api/admin/users/u1/role", reply(json={"message": "ok"}))
    backend.on("GET", "/api/admin/users", reply(500, json={"message": "list broke"}))
    controller = _controller(backend, confirm=lambda p: True)

    notice = await controller.change_role("u1", "user")

    assert notice.kind is NoticeKind.SUCCESS
    assert notice.message == "ok"
    assert controller.state.error == "Could not load collaborators: list broke"
    assert controller.state.items == []
    assert controller.state.loading is False


class _SlowApi:
    """Fake api whose list calls finish in the order the test releases them."""

    def __init__(self) -> None:
        self.gates: List[asyncio.Event] = []

    async def list_users(self, params):
        gate = asyncio.Event()
        self.gates.append(gate)
        payload = {"users": [{"_id": params.get("search", "none"), "role": "user"}]}
        await gate.wait()
        return payload


async def test_stale_response_is_discarded():
    api = _SlowApi()
    controller = CollaboratorsController(api)  # type: ignore[arg-type]

    first = asyncio.create_task(controller.list({"search": "old"}))
    await asyncio.sleep(0)
    second = asyncio.create_task(controller.list({"search": "new"}))
    await asyncio.sleep(0)

    api.gates[1].set()
    await second
    api.gates[0].set()
    await first

    assert [c.id for c in controller.state.items] == ["new"]
    assert controller.state.loading is False


async def test_closed_controller_ignores_results():
    api = _SlowApi()
    controller = CollaboratorsController(api)  # type: ignore[arg-type]

    task = asyncio.create_task(controller.list({"search": "late"}))
    await asyncio.sleep(0)
    controller.close()
    api.gates[0].set()
    await task

    assert controller.closed is True
    assert controller.state.items == []


async def test_closed_controller_ignores_errors():
    class _FailingApi:
        async def list_users(self, params):
            controller.close()
            raise HttpStatusError("http_error", "late failure", 500)

    controller = CollaboratorsController(_FailingApi())  # type: ignore[arg-type]
    await controller.list()

    assert controller.state.notice is None


async def test_list_after_close_sends_nothing(backend: FakeBackend):
    backend.on("GET", "/api/admin/users", reply(json={"users": [{"_id": "u1"}]}))
    controller = _controller(backend)
    controller.close()

    state = await controller.list({"search": "ana"})

    assert state.loading is False
    assert state.items == []
    assert backend.calls("GET") == []
