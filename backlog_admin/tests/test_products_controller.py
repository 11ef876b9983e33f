"""
ProductsController and ProductForm.

Scenarios
- Wire mapping of products (embedded or bare responsible).
- A failed delete keeps the product listed and shows the backend message.
- Saving without a responsible collaborator sends nothing.
- The assignable list: 403 is an info notice, empty list is an info notice.
- ProductForm: edit prefill, successful submit resets (also when the relist
  fails), failed submit keeps the draft.
"""

from __future__ import annotations

import json

import pytest

from backlog_admin.identity_access.tokens import StaticTokenProvider
from backlog_admin.management.api import AdminApi
from backlog_admin.management.notices import NoticeKind
from backlog_admin.management.products import (
    ASSIGNABLE_DENIED_MESSAGE,
    ASSIGNABLE_EMPTY_MESSAGE,
    Product,
    ProductDraft,
    ProductForm,
    ProductsController,
)

from conftest import FakeBackend, reply

pytestmark = pytest.mark.anyio("asyncio")

PRODUCTS = [
    {
        "_id": "5",
        "nombre": "Portal",
        "descripcion": "Customer portal",
        "responsable": {"_id": "u1", "nombre_negocio": "Ana", "email": "ana@x.org"},
        "fecha_fin": "2025-03-31T00:00:00.000Z",
        "estado": "activo",
    },
    {"_id": "6", "nombre": "Billing", "descripcion": "", "responsable": "u2", "estado": "completado"},
]


def _controller(backend: FakeBackend, **kwargs) -> ProductsController:
    api = AdminApi("http://api.test", StaticTokenProvider("tok"), transport=backend.transport)
    return ProductsController(api, **kwargs)


def _draft(**overrides) -> ProductDraft:
    values = dict(name="Portal", description="Customer portal", responsible_id="u1", end_date="2025-03-31", status="activo")
    values.update(overrides)
    return ProductDraft(**values)


def test_product_from_api_handles_embedded_and_bare_responsible():
    portal = Product.from_api(PRODUCTS[0])
    billing = Product.from_api(PRODUCTS[1])

    assert portal.responsible.display == "Ana"
    assert billing.responsible.id == "u2" and billing.responsible.display == "u2"
    assert billing.status == "completado"


def test_draft_from_product_trims_date_and_payload_uses_wire_names():
    draft = ProductDraft.from_product(Product.from_api(PRODUCTS[0]))

    assert draft.end_date == "2025-03-31"
    assert draft.to_payload() == {
        "nombre": "Portal",
        "descripcion": "Customer portal",
        "responsable": "u1",
        "fecha_fin": "2025-03-31",
        "estado": "activo",
    }


def test_draft_from_form_defaults_status():
    draft = ProductDraft.from_form({"name": " X ", "responsible_id": "u1"})
    assert draft.name == "X"
    assert draft.status == "activo"


async def test_failed_delete_keeps_item_and_shows_message(backend: FakeBackend):
    backend.on("GET", "/api/productos", reply(json={"productos": PRODUCTS}))
    backend.on("DELETE", "/api/productos/5", reply(500, json={"message": "locked"}))
    prompts = []
    controller = _controller(backend, confirm=lambda p: prompts.append(p) or True)
    await controller.list()

    notice = await controller.remove("5", label="Portal")

    assert prompts == ['Delete product "Portal"?']
    assert notice.kind is NoticeKind.ERROR
    assert notice.message == "locked"
    assert [p.id for p in controller.state.items] == ["5", "6"]
    assert len(backend.calls("GET")) == 1


async def test_delete_success_relists(backend: FakeBackend):
    backend.on("GET", "/api/productos", reply(json={"productos": PRODUCTS}), reply(json={"productos": PRODUCTS[1:]}))
    backend.on("DELETE", "/api/productos/5", reply(204))
    controller = _controller(backend, confirm=lambda p: True)
    await controller.list()

    notice = await controller.remove("5")

    assert notice.message == "Product deleted."
    assert [p.id for p in controller.state.items] == ["6"]


async def test_declined_delete_sends_nothing(backend: FakeBackend):
    controller = _controller(backend, confirm=lambda p: False)
    assert await controller.remove("5") is None
    assert backend.requests == []


async def test_save_without_responsible_sends_nothing(backend: FakeBackend):
    controller = _controller(backend)

    notice = await controller.create(_draft(responsible_id="  "))

    assert notice.is_error
    assert notice.message == "Select a responsible collaborator."
    assert backend.requests == []


async def test_create_posts_payload_and_relists(backend: FakeBackend):
    backend.on("POST", "/api/productos", reply(201, json={"message": "Producto creado"}))
    backend.on("GET", "/api/productos", reply(json={"productos": PRODUCTS}))
    controller = _controller(backend)

    notice = await controller.create(_draft())

    assert notice.message == "Producto creado"
    assert [r.method for r in backend.requests] == ["POST", "GET"]
    assert json.loads(backend.requests[0].content)["responsable"] == "u1"


async def test_update_failure_message_fallback(backend: FakeBackend):
    backend.on("PUT", "/api/productos/5", reply(400, text="bad"))
    controller = _controller(backend)

    notice = await controller.update("5", _draft())

    assert notice.message == "Could not save product."


async def test_assignable_forbidden_is_info_notice(backend: FakeBackend):
    backend.on("GET", "/api/users-for-assignment", reply(403, json={"message": "nope"}))
    controller = _controller(backend)

    state = await controller.load_assignable()

    assert state.users == []
    assert state.denied is True
    assert state.notice.kind is NoticeKind.INFO
    assert state.notice.message == ASSIGNABLE_DENIED_MESSAGE


async def test_assignable_empty_is_info_notice(backend: FakeBackend):
    backend.on("GET", "/api/users-for-assignment", reply(json={"users": []}))
    state = await _controller(backend).load_assignable()
    assert state.notice.message == ASSIGNABLE_EMPTY_MESSAGE
    assert state.denied is False


async def test_assignable_other_failure_is_error(backend: FakeBackend):
    backend.on("GET", "/api/users-for-assignment", reply(500, json={"message": "boom"}))
    state = await _controller(backend).load_assignable()
    assert state.notice.is_error
    assert state.notice.message == "Could not load collaborators: boom"


async def test_assignable_users_parsed(backend: FakeBackend):
    backend.on(
        "GET",
        "/api/users-for-assignment",
        reply(json={"users": [{"_id": "u1", "nombre_negocio": "Ana", "email": "ana@x.org", "role": "developers"}]}),
    )
    state = await _controller(backend).load_assignable()
    assert [u.id for u in state.users] == ["u1"]
    assert state.notice is None


async def test_form_edit_submit_resets_on_success(backend: FakeBackend):
    backend.on("PUT", "/api/productos/5", reply(json={"message": "Producto actualizado"}))
    backend.on("GET", "/api/productos", reply(json={"productos": PRODUCTS}))
    form = ProductForm(_controller(backend))
    form.start_edit(Product.from_api(PRODUCTS[0]))
    form.set_field("status", "inactivo")

    notice = await form.submit()

    assert notice.message == "Producto actualizado"
    assert json.loads(backend.calls("PUT")[0].content)["estado"] == "inactivo"
    assert form.visible is False
    assert form.editing is None
    assert form.draft == ProductDraft()


async def test_form_failed_submit_keeps_draft(backend: FakeBackend):
    backend.on("POST", "/api/productos", reply(409, json={"message": "Nombre duplicado"}))
    form = ProductForm(_controller(backend))
    form.start_create()
    for name, value in (("name", "Portal"), ("description", "d"), ("responsible_id", "u1")):
        form.set_field(name, value)

    notice = await form.submit()

    assert notice.message == "Nombre duplicado"
    assert form.visible is True
    assert form.draft.name == "Portal"


async def test_form_closes_when_create_succeeds_but_relist_fails(backend: FakeBackend):
    backend.on("POST", "/api/productos", reply(201, json={"message": "Producto creado"}))
    backend.on("GET", "/api/productos", reply(500, json={"message": "list broke"}))
    controller = _controller(backend)
    form = ProductForm(controller)
    form.start_create()
    for name, value in (("name", "Portal"), ("description", "d"), ("responsible_id", "u1")):
        form.set_field(name, value)

    notice = await form.submit()

    assert notice.kind is NoticeKind.SUCCESS
    assert notice.message == "Producto creado"
    assert form.visible is False
    assert form.draft == ProductDraft()
    assert controller.state.error == "Could not load products: list broke"
    assert len(backend.calls("POST")) == 1


def test_form_rejects_unknown_field(backend: FakeBackend):
    form = ProductForm(_controller(backend))
    with pytest.raises(KeyError):
        form.set_field("owner", "x")


def test_form_cancel_clears_state(backend: FakeBackend):
    form = ProductForm(_controller(backend))
    form.start_edit(Product.from_api(PRODUCTS[1]))
    form.cancel()
    assert (form.visible, form.editing, form.draft) == (False, None, ProductDraft())
