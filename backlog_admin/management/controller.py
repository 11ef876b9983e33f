"""
Resource list controller shared by the management screens.

Why:
    Collaborators and products follow the same contract: fetch a filtered
    collection, show it, mutate one record, then fetch again. Keeping that
    state machine in one place keeps both screens consistent.

Behavior:
    - `list()` replaces `items` wholesale. A failed list leaves `items` empty
      and an error notice; stale items are never shown next to an error.
    - `loading` is cleared on every exit path of the latest request.
    - Every request gets a sequence number; a response is applied only if it
      belongs to the most recent `list()` and the controller is not closed.
    - Mutations never patch `items` locally. On success exactly one relist runs.
      The returned notice reports the mutation itself; a failed relist keeps
      its own error in `state.notice` (with `items` empty).
    - A closed controller does not start new lists.
    - Destructive actions ask `confirm(prompt)` first; a declined prompt sends
      nothing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Generic, List, Mapping, Optional, TypeVar
import logging

from .api import AdminApi, AdminApiError
from .notices import Notice, NoticeKind

logger = logging.getLogger("backlog_admin.management")

T = TypeVar("T")
ConfirmFn = Callable[[str], bool]

ALL_SENTINEL = "all"


def build_query(filters: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """Keep only filters with a real value (drops None, blanks and "all")."""
    query: Dict[str, str] = {}
    for key, value in (filters or {}).items():
        if value is None:
            continue
        text = str(value).strip()
        if not text or text.lower() == ALL_SENTINEL:
            continue
        query[key] = text
    return query


def pick_text(raw: Mapping[str, Any], *keys: str) -> str:
    """First non-blank value among `keys`, stripped; "" when none is set."""
    for key in keys:
        value = raw.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def _decline(prompt: str) -> bool:
    return False


@dataclass
class ListState(Generic[T]):
    items: List[T] = field(default_factory=list)
    loading: bool = False
    notice: Optional[Notice] = None
    search: str = ""
    filters: Dict[str, str] = field(default_factory=dict)

    @property
    def error(self) -> Optional[str]:
        if self.notice and self.notice.kind is NoticeKind.ERROR:
            return self.notice.message
        return None


class ResourceListController(Generic[T]):
    """Fetch/search/filter/mutate state for one resource collection.

    Subclasses provide the collection fetch, the JSON key holding the items
    and the item parser. The controller owns its state exclusively.
    """

    resource_name = "items"
    item_name = "item"
    collection_key = "items"
    filter_names: tuple[str, ...] = ()

    def __init__(self, api: AdminApi, *, confirm: Optional[ConfirmFn] = None) -> None:
        self.api = api
        self.confirm: ConfirmFn = confirm or _decline
        self.state: ListState[T] = ListState()
        self._seq = 0
        self._closed = False

    # --- Hooks -----------------------------------------------------------------

    async def fetch_collection(self, params: Dict[str, str]) -> Mapping[str, Any]:
        raise NotImplementedError

    def parse_item(self, raw: Mapping[str, Any]) -> T:
        raise NotImplementedError

    async def delete_item(self, item_id: str) -> Mapping[str, Any]:
        raise NotImplementedError(f"{self.resource_name} cannot be deleted")

    # --- Lifecycle -------------------------------------------------------------

    def close(self) -> None:
        """Abandon pending requests: their results will not be applied."""
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def has_listed(self) -> bool:
        """True once `list()` has been started at least once."""
        return self._seq > 0

    def _is_current(self, seq: int) -> bool:
        return not self._closed and seq == self._seq

    # --- Listing ---------------------------------------------------------------

    def current_filters(self) -> Dict[str, str]:
        return {"search": self.state.search, **self.state.filters}

    def set_filters(self, filters: Mapping[str, Any]) -> None:
        """Update search text and known filters without fetching."""
        for key, value in filters.items():
            text = "" if value is None else str(value)
            if key == "search":
                self.state.search = text
            elif key in self.filter_names:
                self.state.filters[key] = text

    def _parse_collection(self, body: Mapping[str, Any]) -> List[T]:
        raw_items = body.get(self.collection_key)
        if not isinstance(raw_items, list):
            return []
        return [self.parse_item(raw) for raw in raw_items if isinstance(raw, Mapping)]

    async def list(self, filters: Optional[Mapping[str, Any]] = None) -> ListState[T]:
        if self._closed:
            return self.state
        if filters is not None:
            self.set_filters(filters)
        self._seq += 1
        seq = self._seq
        self.state.loading = True
        self.state.notice = None
        try:
            body = await self.fetch_collection(build_query(self.current_filters()))
            items = self._parse_collection(body)
        except AdminApiError as exc:
            if self._is_current(seq):
                logger.warning("Listing %s failed: %s (status=%s)", self.resource_name, exc.code, exc.status)
                self.state.items = []
                self.state.notice = Notice.error(f"Could not load {self.resource_name}: {self._detail(exc)}")
        else:
            if self._is_current(seq):
                self.state.items = items
        finally:
            if self._is_current(seq):
                self.state.loading = False
        return self.state

    # --- Mutations -------------------------------------------------------------

    @staticmethod
    def _detail(exc: AdminApiError, fallback: Optional[str] = None) -> str:
        if exc.message:
            return exc.message
        if fallback:
            return fallback
        if exc.status:
            return f"request failed (HTTP {exc.status})"
        return "unknown error"

    def _set_notice(self, notice: Notice) -> Notice:
        if not self._closed:
            self.state.notice = notice
        return notice

    async def _mutate(
        self,
        call: Callable[[], Awaitable[Mapping[str, Any]]],
        *,
        success: str,
        failure: str,
    ) -> Notice:
        """Run a mutation; relist once on success, surface the server message on failure."""
        try:
            body = await call()
        except AdminApiError as exc:
            logger.warning("Changing %s failed: %s (status=%s)", self.resource_name, exc.code, exc.status)
            return self._set_notice(Notice.error(self._detail(exc, failure)))

        message = body.get("message") if isinstance(body, Mapping) else None
        if not isinstance(message, str) or not message.strip():
            message = success
        outcome = Notice.success(message.strip())

        await self.list()
        if self.state.error:
            return outcome
        return self._set_notice(outcome)

    async def remove(self, item_id: str, *, label: Optional[str] = None) -> Optional[Notice]:
        """Delete one record after confirmation. Returns None when declined."""
        if not self.confirm(f'Delete {self.item_name} "{label or item_id}"?'):
            return None
        return await self._mutate(
            lambda: self.delete_item(item_id),
            success=f"{self.item_name.capitalize()} deleted.",
            failure=f"Could not delete {self.item_name}.",
        )


__all__ = ["ALL_SENTINEL", "ConfirmFn", "ListState", "ResourceListController", "build_query", "pick_text"]
