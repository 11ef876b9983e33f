"""Role and product status badges."""

from backlog_admin.identity_access.domain import role_info, status_info

from .base import Component


class RoleBadge(Component):
    """Colored label for a role; unknown values render neutral with the raw text."""

    def __init__(self, role: str) -> None:
        self.role = role

    def render(self) -> str:
        info = role_info(self.role)
        attrs = self.attributes(class_=self.classes("badge", f"badge--{info.tone}"), data_role=info.value or None)
        return f"<span {attrs}>{self.escape(info.label)}</span>"


class StatusBadge(Component):
    def __init__(self, status: str) -> None:
        self.status = status

    def render(self) -> str:
        info = status_info(self.status)
        attrs = self.attributes(class_=self.classes("badge", f"badge--{info.tone}"), data_status=info.value or None)
        return f"<span {attrs}>{self.escape(info.label)}</span>"
