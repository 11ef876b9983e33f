"""Banner for controller notices (success, error, info)."""

from typing import Iterable, Optional

from backlog_admin.management.notices import Notice, NoticeKind

from .base import Component


class NoticeBanner(Component):
    """Render zero or more notices; errors are announced with role="alert"."""

    def __init__(self, notices: Iterable[Optional[Notice]]) -> None:
        unique = []
        for notice in notices:
            if notice is not None and notice not in unique:
                unique.append(notice)
        self.notices = unique

    def render(self) -> str:
        return "".join(self._render_one(notice) for notice in self.notices)

    def _render_one(self, notice: Notice) -> str:
        role = "alert" if notice.kind is NoticeKind.ERROR else "status"
        attrs = self.attributes(class_=self.classes("notice", f"notice--{notice.kind.value}"), role=role)
        return f"<div {attrs}>{self.escape(notice.message)}</div>"
