"""
Page shell for the admin console.

Every full-page response goes through `Layout`; fragments never do. The
document title carries the console name so browser tabs stay distinguishable
between the admin console and the main backlog app.
"""

from typing import Any, Dict, List, Optional

from .base import Component
from .navigation import Navigation

APP_NAME = "Backlog Admin"
STYLESHEETS = ("/static/css/admin.css",)


class Layout(Component):
    """Full HTML document: head, optional sidebar, and a titled main region."""

    def __init__(
        self,
        title: str,
        content: str,
        user: Optional[Dict[str, Any]] = None,
        show_nav: bool = True,
        current_path: str = "/",
    ):
        self.title = title
        self.content = content
        self.user = user
        self.show_nav = show_nav
        self.current_path = current_path

    def _head(self) -> str:
        links = "".join(f'<link rel="stylesheet" href="{href}">' for href in STYLESHEETS)
        return (
            '<meta charset="UTF-8">'
            '<meta name="viewport" content="width=device-width, initial-scale=1.0">'
            f"<title>{self.escape(self.title)} | {APP_NAME}</title>"
            f"{links}"
        )

    def _body_parts(self) -> List[str]:
        parts = ['<a href="#main-content" class="skip-link">Skip to main content</a>']
        if self.show_nav:
            parts.append(Navigation(self.user, self.current_path).render())
        parts.append(
            '<main id="main-content" class="main-content">'
            f"<h1>{self.escape(self.title)}</h1>"
            f"{self.content}"
            "</main>"
        )
        return parts

    def render(self) -> str:
        body = "\n".join(self._body_parts())
        return f'<!DOCTYPE html>\n<html lang="en">\n<head>{self._head()}</head>\n<body>\n{body}\n</body>\n</html>'
