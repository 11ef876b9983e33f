"""
Collaborators: list principals and change their role.

The backend returns `{ "users": [...] }` with its own field names
(`_id`, `nombre_negocio`, `is_active`, `createdAt`, `clerk_id`); they are
mapped onto `Collaborator` here and nowhere else.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from backlog_admin.identity_access.domain import normalize_role, role_info

from .controller import ResourceListController, pick_text
from .notices import Notice


@dataclass(frozen=True)
class Collaborator:
    id: str
    name: str
    email: str
    role: str
    active: bool
    created_at: Optional[str] = None
    external_id: Optional[str] = None

    @classmethod
    def from_api(cls, raw: Mapping[str, Any]) -> "Collaborator":
        return cls(
            id=pick_text(raw, "_id", "id"),
            name=pick_text(raw, "nombre_negocio", "name"),
            email=pick_text(raw, "email"),
            role=pick_text(raw, "role"),
            active=bool(raw.get("is_active", raw.get("active", True))),
            created_at=pick_text(raw, "createdAt", "created_at") or None,
            external_id=pick_text(raw, "clerk_id", "external_id") or None,
        )

    @property
    def display_name(self) -> str:
        return self.name or "No name"

    @property
    def initial(self) -> str:
        return (self.name or self.email or "U")[:1].upper()


class CollaboratorsController(ResourceListController[Collaborator]):
    """Search/filter collaborators and assign roles.

    Filters: `search` (name or email fragment) and `role` (`all` = no filter).
    """

    resource_name = "collaborators"
    item_name = "collaborator"
    collection_key = "users"
    filter_names = ("role",)

    async def fetch_collection(self, params: Dict[str, str]) -> Mapping[str, Any]:
        return await self.api.list_users(params)

    def parse_item(self, raw: Mapping[str, Any]) -> Collaborator:
        return Collaborator.from_api(raw)

    def find(self, user_id: str) -> Optional[Collaborator]:
        return next((c for c in self.state.items if c.id == user_id), None)

    async def change_role(self, user_id: str, new_role: str) -> Optional[Notice]:
        """Assign `new_role` after a confirmation that names the role.

        Returns None when the confirmation is declined (nothing is sent).
        Unknown roles are rejected without a request. The displayed role only
        changes through the relist that follows a successful update.
        """
        role = normalize_role(new_role)
        if role is None:
            return self._set_notice(Notice.error(f'Unknown role "{new_role}".'))
        if not self.confirm(f"Change the role to {role_info(role).label}?"):
            return None
        return await self._mutate(
            lambda: self.api.change_user_role(user_id, role),
            success="Role updated.",
            failure="Could not update role.",
        )


__all__ = ["Collaborator", "CollaboratorsController"]
