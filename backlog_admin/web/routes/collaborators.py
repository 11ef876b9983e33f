"""
Collaborator management pages.

Why:
    Super admins look up collaborators and change their roles. The page is a
    thin shell around `CollaboratorsController`; the controller decides what
    is sent and which notice results.

Permissions:
    Any signed-in session may open the page. The backend authorises the list
    and the role change; its 403 shows up as an error notice.
"""
from __future__ import annotations

from typing import List, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

from backlog_admin.identity_access.domain import normalize_role
from backlog_admin.identity_access.stores import SessionRecord
from backlog_admin.management.collaborators import Collaborator, CollaboratorsController
from backlog_admin.management.controller import ALL_SENTINEL
from backlog_admin.management.notices import Notice

from ..components import CollaboratorList, ConfirmDialog, NoticeBanner
from ..deps import admin_api, current_session, layout_response, require_csrf

collaborators_router = APIRouter(tags=["Collaborators"])

PAGE_TITLE = "Collaborators"


def _list_href(search: str, role: str) -> str:
    query = {k: v for k, v in (("search", search), ("role", role)) if v and v != ALL_SENTINEL}
    return "/admin/collaborators" + (f"?{urlencode(query)}" if query else "")


def _render_page(request: Request, controller: CollaboratorsController, record: SessionRecord, notices: List[Optional[Notice]]) -> HTMLResponse:
    state = controller.state
    listing = CollaboratorList(
        state.items,
        csrf_token=record.csrf_token,
        search=state.search,
        role_filter=state.filters.get("role") or ALL_SENTINEL,
        show_empty=state.error is None,
    )
    content = NoticeBanner(notices + [state.notice]).render() + listing.render()
    return layout_response(request, title=PAGE_TITLE, content=content)


async def _apply_own_role_change(record: SessionRecord, controller: CollaboratorsController, user_id: str, role: str) -> None:
    """Reflect a role change of the signed-in principal in the session.

    The relisted row identifies the principal. Without it (the relist failed)
    the session role is re-resolved from the backend profile instead.
    """
    if record.roles is None:
        return
    target: Optional[Collaborator] = controller.find(user_id)
    if target is None:
        if controller.state.error:
            await record.roles.refresh_role()
        return
    if target.external_id and target.external_id == record.principal.sub:
        record.roles.update_role(role)


@collaborators_router.get("/admin/collaborators", response_class=HTMLResponse)
async def collaborators_index(request: Request, search: str = "", role: str = ALL_SENTINEL):
    record = current_session(request)
    async with admin_api(request) as api:
        controller = CollaboratorsController(api)
        await controller.list({"search": search, "role": role})
    return _render_page(request, controller, record, [])


@collaborators_router.post("/admin/collaborators/{user_id}/role", response_class=HTMLResponse)
async def collaborators_change_role(request: Request, user_id: str):
    """
    Change one collaborator's role.

    Behavior:
        - Without `confirm=yes` the confirmation step is rendered and nothing
          is sent to the backend.
        - After a confirmed change the list is reloaded once by the controller;
          the page shows that fresh list with the outcome notice.
        - If the changed collaborator is the signed-in principal, the session
          role is updated in place.
    """
    record = current_session(request)
    form = await request.form()
    require_csrf(record, form.get("csrf_token"))
    new_role = str(form.get("role") or "")
    search = str(form.get("search") or "")
    role_filter = str(form.get("filter_role") or ALL_SENTINEL)
    confirmed = form.get("confirm") == "yes"
    prompts: List[str] = []

    def confirm(prompt: str) -> bool:
        prompts.append(prompt)
        return confirmed

    async with admin_api(request) as api:
        controller = CollaboratorsController(api, confirm=confirm)
        controller.set_filters({"search": search, "role": role_filter})
        notice = await controller.change_role(user_id, new_role)

        if notice is None:
            dialog = ConfirmDialog(
                prompts[-1],
                action=f"/admin/collaborators/{user_id}/role",
                hidden={
                    "csrf_token": record.csrf_token,
                    "role": new_role,
                    "search": search,
                    "filter_role": role_filter,
                },
                cancel_href=_list_href(search, role_filter),
                confirm_label="Change role",
            )
            return layout_response(request, title="Confirm role change", content=dialog.render())

        if not notice.is_error:
            await _apply_own_role_change(record, controller, user_id, normalize_role(new_role) or new_role)
        if not controller.has_listed:
            # Rejected before or by the backend: show the current list next to the error.
            await controller.list()
    return _render_page(request, controller, record, [notice])
