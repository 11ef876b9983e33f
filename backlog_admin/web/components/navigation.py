"""
Navigation component for the admin console.

Role-aware sidebar: the management entries are shown only to roles that can
use them. Hiding a link grants nothing and denies nothing; the backend
decides, and its 403s reach the page as notices.
"""

from typing import Any, Dict, List, Optional, Tuple

from backlog_admin.identity_access.domain import COLLABORATOR_MANAGER_ROLES, PRODUCT_MANAGER_ROLES

from .badges import RoleBadge
from .base import Component

NavItem = Tuple[str, str]


class Navigation(Component):
    """Sidebar with role-based menu items and the signed-in user's footer."""

    def __init__(self, user: Optional[Dict[str, Any]] = None, current_path: str = "/"):
        """
        Args:
            user: Request user context (`name`, `role`, `role_loaded`, `csrf_token`), or None.
            current_path: Current URL path for active link highlighting.
        """
        self.user = user
        self.current_path = current_path

    def render(self) -> str:
        if not self.user:
            links = self._create_nav_link("/auth/login", "Sign in", is_active=False)
            return self._aside(links, footer="")

        items = self.nav_items()
        active_href = self._determine_active_href(items)
        links = "".join(self._create_nav_link(href, text, is_active=(href == active_href)) for href, text in items)
        return self._aside(links, footer=self._render_footer())

    def nav_items(self) -> List[NavItem]:
        """Entries visible for the user's current role.

        While the role is still loading only Home is shown; unknown roles get
        the same minimal menu.
        """
        data = self.user or {}
        items: List[NavItem] = [("/", "Home")]
        if not data.get("role_loaded", True):
            return items
        role = str(data.get("role") or "").lower()
        if role in PRODUCT_MANAGER_ROLES:
            items.append(("/admin/products", "Products"))
        if role in COLLABORATOR_MANAGER_ROLES:
            items.append(("/admin/collaborators", "Collaborators"))
        return items

    def _determine_active_href(self, items: List[NavItem]) -> str:
        """Best prefix match of the current path across the visible items."""
        path = self.current_path or "/"
        best = "/"
        best_len = 0
        for href, _text in items:
            if href == path:
                return href
            if href != "/" and path.startswith(href) and len(href) > best_len:
                best = href
                best_len = len(href)
        return best

    def _create_nav_link(self, href: str, text: str, *, is_active: bool) -> str:
        attrs = self.attributes(
            href=href,
            class_=self.classes("sidebar-link", active=is_active),
            aria_current="page" if is_active else None,
        )
        return f"<a {attrs}>{self.escape(text)}</a>"

    def _render_footer(self) -> str:
        data = self.user or {}
        if data.get("role_loaded", True) and data.get("role"):
            role_html = RoleBadge(str(data["role"])).render()
        else:
            role_html = '<span class="badge badge--neutral">Loading role</span>'
        refresh = (
            '<form method="post" action="/auth/role/refresh" class="inline-form">'
            f"{self.hidden_inputs({'csrf_token': data.get('csrf_token'), 'next': self.current_path})}"
            '<button type="submit" class="btn btn-link">Refresh role</button>'
            "</form>"
        )
        return (
            '<div class="sidebar-footer">'
            f'<div class="user-name">{self.escape(data.get("name") or data.get("email") or "")}</div>'
            f'<div class="user-role">{role_html}</div>'
            f"{refresh}"
            '<a href="/auth/logout" class="sidebar-link sidebar-logout">Sign out</a>'
            "</div>"
        )

    @staticmethod
    def _aside(links: str, *, footer: str) -> str:
        return f"""
    <aside class="sidebar" id="sidebar" aria-label="Sidebar">
        <nav class="sidebar-nav" role="navigation" aria-label="Main navigation">
            <div class="sidebar-header"><span class="sidebar-title">Backlog Admin</span></div>
            <div class="sidebar-items">{links}</div>
            {footer}
        </nav>
    </aside>"""
