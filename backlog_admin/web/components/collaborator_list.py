"""
Collaborator list with search, role filter and per-row role change.

Every row carries its own small form; the current search and role filter ride
along as hidden fields so the page comes back with the same view after the
change.
"""

from typing import List

from backlog_admin.identity_access.domain import ROLE_OPTIONS, normalize_role
from backlog_admin.management.collaborators import Collaborator
from backlog_admin.management.controller import ALL_SENTINEL

from .badges import RoleBadge
from .base import Component
from .forms.fields import SelectField, TextInputField
from .forms.submit import SubmitButton


class CollaboratorList(Component):
    def __init__(
        self,
        items: List[Collaborator],
        *,
        csrf_token: str,
        search: str = "",
        role_filter: str = ALL_SENTINEL,
        show_empty: bool = True,
    ) -> None:
        self.items = items
        self.csrf_token = csrf_token
        self.search = search
        self.role_filter = role_filter or ALL_SENTINEL
        self.show_empty = show_empty

    @property
    def filtered(self) -> bool:
        return bool(self.search.strip()) or self.role_filter != ALL_SENTINEL

    def _render_empty(self) -> str:
        if self.filtered:
            hint = "No collaborators match the applied filters."
        else:
            hint = "No collaborators yet. Invite the first one from the identity provider."
        return f'<li class="empty-state"><strong>No collaborators</strong><p class="text-muted">{hint}</p></li>'

    def render(self) -> str:
        rows = "".join(self._render_row(item) for item in self.items)
        if not rows and self.show_empty:
            rows = self._render_empty()
        return f"""
        {self._render_filters()}
        <h2 class="list-heading">Collaborators ({len(self.items)})</h2>
        <ul class="collaborator-list" id="collaborator-list">{rows}</ul>
        """

    def _render_filters(self) -> str:
        role_options = [(ALL_SENTINEL, "All roles")] + [(info.value, info.label) for info in ROLE_OPTIONS]
        return f"""
        <form method="get" action="/admin/collaborators" class="filter-bar" role="search">
            {TextInputField("search", "Search").render(value=self.search, input_type="search", placeholder="Name or email")}
            {SelectField("role", "Role").render(role_options, selected=self.role_filter)}
            {SubmitButton("Apply", variant="secondary").render()}
        </form>
        """

    def _render_row(self, item: Collaborator) -> str:
        current = normalize_role(item.role) or ""
        select = SelectField(f"role-{item.id}", "New role").render(
            [(info.value, info.label) for info in ROLE_OPTIONS],
            selected=current,
            name="role",
        )
        hidden = self.hidden_inputs(
            {"csrf_token": self.csrf_token, "search": self.search, "filter_role": self.role_filter}
        )
        status = "Active" if item.active else "Inactive"
        created = self.day(item.created_at)
        created_html = f'<span class="text-muted">Created {self.escape(created)}</span>' if created else ""
        attrs = self.attributes(class_=self.classes("collaborator-row", inactive=not item.active), data_id=item.id)
        return f"""
        <li {attrs}>
            <span class="avatar" aria-hidden="true">{self.escape(item.initial)}</span>
            <div class="collaborator-main">
                <strong>{self.escape(item.display_name)}</strong>
                <span class="text-muted">{self.escape(item.email)}</span>
            </div>
            {RoleBadge(item.role).render()}
            <span class="text-muted">{status}</span>
            {created_html}
            <form method="post" action="/admin/collaborators/{self.escape(item.id)}/role" class="inline-form">
                {hidden}
                {select}
                {SubmitButton("Change role", variant="secondary").render()}
            </form>
        </li>
        """
