"""
Product management pages: list/search, create, edit, delete.

Why:
    Product owners and super admins maintain products and their responsible
    collaborator. Pages delegate every decision to `ProductsController` and
    `ProductForm`; this module only maps form posts and renders the result.

Permissions:
    Any signed-in session may open the pages; the backend authorises each
    call. A denied assignable list keeps the form usable with an info notice.
"""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

from backlog_admin.identity_access.stores import SessionRecord
from backlog_admin.management.notices import Notice
from backlog_admin.management.products import ProductDraft, ProductForm, ProductsController

from ..components import ConfirmDialog, NoticeBanner, ProductFormView, ProductList
from ..deps import admin_api, current_session, layout_response, require_csrf

products_router = APIRouter(tags=["Products"])

PAGE_TITLE = "Products"


def _render_list(request: Request, controller: ProductsController, record: SessionRecord, notices: List[Optional[Notice]]) -> HTMLResponse:
    state = controller.state
    listing = ProductList(state.items, csrf_token=record.csrf_token, search=state.search, show_empty=state.error is None)
    content = NoticeBanner(notices + [state.notice]).render() + listing.render()
    return layout_response(request, title=PAGE_TITLE, content=content)


def _render_form(
    request: Request,
    controller: ProductsController,
    form: ProductForm,
    record: SessionRecord,
    *,
    notice: Optional[Notice] = None,
    status_code: int = 200,
) -> HTMLResponse:
    view = ProductFormView(
        form.draft,
        csrf_token=record.csrf_token,
        assignable=controller.assignable,
        product_id=form.editing.id if form.editing else None,
        notice=notice,
    )
    title = f"Edit {form.editing.name}" if form.editing else "New product"
    return layout_response(request, title=title, content=view.render(), status_code=status_code)


async def _open_for_edit(controller: ProductsController, form: ProductForm, product_id: str) -> Optional[Notice]:
    """Load the product into the form; returns an error notice when it cannot be found."""
    await controller.list()
    if controller.state.error:
        return controller.state.notice
    product = controller.find(product_id)
    if product is None:
        return Notice.error("Product not found.")
    form.start_edit(product)
    return None


async def _submit(request: Request, product_id: Optional[str]) -> HTMLResponse:
    record = current_session(request)
    data = await request.form()
    require_csrf(record, data.get("csrf_token"))
    async with admin_api(request) as api:
        controller = ProductsController(api)
        form = ProductForm(controller)
        if product_id is None:
            form.start_create()
        else:
            missing = await _open_for_edit(controller, form, product_id)
            if missing is not None:
                return _render_list(request, controller, record, [missing])
        submitted = ProductDraft.from_form(data)
        for name in ProductDraft.FIELDS:
            form.set_field(name, getattr(submitted, name))

        notice = await form.submit()
        if notice.is_error:
            await controller.load_assignable()
            return _render_form(request, controller, form, record, notice=notice, status_code=400)
    return _render_list(request, controller, record, [notice])


@products_router.get("/admin/products", response_class=HTMLResponse)
async def products_index(request: Request, search: str = ""):
    record = current_session(request)
    async with admin_api(request) as api:
        controller = ProductsController(api)
        await controller.list({"search": search})
    return _render_list(request, controller, record, [])


@products_router.get("/admin/products/new", response_class=HTMLResponse)
async def products_new(request: Request):
    record = current_session(request)
    async with admin_api(request) as api:
        controller = ProductsController(api)
        form = ProductForm(controller)
        form.start_create()
        await controller.load_assignable()
    return _render_form(request, controller, form, record)


@products_router.get("/admin/products/{product_id}/edit", response_class=HTMLResponse)
async def products_edit(request: Request, product_id: str):
    record = current_session(request)
    async with admin_api(request) as api:
        controller = ProductsController(api)
        form = ProductForm(controller)
        missing = await _open_for_edit(controller, form, product_id)
        if missing is not None:
            return _render_list(request, controller, record, [missing])
        await controller.load_assignable()
    return _render_form(request, controller, form, record)


@products_router.post("/admin/products", response_class=HTMLResponse)
async def products_create(request: Request):
    """Create a product; a failed save re-renders the form with the entered values."""
    return await _submit(request, None)


@products_router.post("/admin/products/{product_id}", response_class=HTMLResponse)
async def products_update(request: Request, product_id: str):
    return await _submit(request, product_id)


@products_router.post("/admin/products/{product_id}/delete", response_class=HTMLResponse)
async def products_delete(request: Request, product_id: str):
    """
    Delete a product after the confirmation step.

    Without `confirm=yes` only the confirmation is rendered. A failed delete
    shows the backend's message next to the unchanged list.
    """
    record = current_session(request)
    data = await request.form()
    require_csrf(record, data.get("csrf_token"))
    label = str(data.get("name") or "") or None
    search = str(data.get("search") or "")
    confirmed = data.get("confirm") == "yes"
    prompts: List[str] = []

    def confirm(prompt: str) -> bool:
        prompts.append(prompt)
        return confirmed

    async with admin_api(request) as api:
        controller = ProductsController(api, confirm=confirm)
        controller.set_filters({"search": search})
        notice = await controller.remove(product_id, label=label)
        if notice is None:
            dialog = ConfirmDialog(
                prompts[-1],
                action=f"/admin/products/{product_id}/delete",
                hidden={"csrf_token": record.csrf_token, "name": label, "search": search},
                cancel_href="/admin/products",
                confirm_label="Delete",
            )
            return layout_response(request, title="Confirm deletion", content=dialog.render())
        if not controller.has_listed:
            await controller.list()
    return _render_list(request, controller, record, [notice])
