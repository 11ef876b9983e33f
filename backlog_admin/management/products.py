"""
Products: CRUD with a responsible principal, plus the edit form binding.

Backend wire format (`/api/productos`):
    { "_id", "nombre", "descripcion", "responsable": {"_id", "nombre_negocio", "email"} | "<id>",
      "fecha_fin", "estado": "activo" | "inactivo" | "completado", "createdAt" }
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional

from backlog_admin.identity_access.domain import DEFAULT_PRODUCT_STATUS

from .api import AdminApiError, PermissionDeniedError
from .collaborators import Collaborator
from .controller import ResourceListController, pick_text
from .notices import Notice

ASSIGNABLE_DENIED_MESSAGE = (
    "You do not have permission to see the collaborator list. "
    "Ask a Product Owner or Super Admin for access."
)
ASSIGNABLE_EMPTY_MESSAGE = "No collaborators available to assign as responsible."


@dataclass(frozen=True)
class ResponsibleRef:
    id: str
    name: str = ""
    email: str = ""

    @classmethod
    def from_api(cls, raw: Any) -> "ResponsibleRef":
        if isinstance(raw, Mapping):
            return cls(id=pick_text(raw, "_id", "id"), name=pick_text(raw, "nombre_negocio", "name"), email=pick_text(raw, "email"))
        return cls(id=str(raw or "").strip())

    @property
    def display(self) -> str:
        return self.name or self.email or self.id


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    description: str
    responsible: ResponsibleRef
    status: str
    end_date: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_api(cls, raw: Mapping[str, Any]) -> "Product":
        return cls(
            id=pick_text(raw, "_id", "id"),
            name=pick_text(raw, "nombre", "name"),
            description=pick_text(raw, "descripcion", "description"),
            responsible=ResponsibleRef.from_api(raw.get("responsable", raw.get("responsible"))),
            status=pick_text(raw, "estado", "status") or DEFAULT_PRODUCT_STATUS,
            end_date=pick_text(raw, "fecha_fin", "end_date") or None,
            created_at=pick_text(raw, "createdAt", "created_at") or None,
        )


@dataclass(frozen=True)
class ProductDraft:
    """Editable fields of a product; `end_date` is a YYYY-MM-DD string or empty."""

    name: str = ""
    description: str = ""
    responsible_id: str = ""
    end_date: str = ""
    status: str = DEFAULT_PRODUCT_STATUS

    FIELDS = ("name", "description", "responsible_id", "end_date", "status")

    @classmethod
    def from_product(cls, product: Product) -> "ProductDraft":
        return cls(
            name=product.name,
            description=product.description,
            responsible_id=product.responsible.id,
            end_date=(product.end_date or "").split("T", 1)[0],
            status=product.status,
        )

    @classmethod
    def from_form(cls, form: Mapping[str, Any]) -> "ProductDraft":
        values = {name: str(form.get(name) or "").strip() for name in cls.FIELDS}
        values["status"] = values["status"] or DEFAULT_PRODUCT_STATUS
        return cls(**values)

    def to_payload(self) -> Dict[str, str]:
        return {
            "nombre": self.name,
            "descripcion": self.description,
            "responsable": self.responsible_id,
            "fecha_fin": self.end_date,
            "estado": self.status,
        }


@dataclass
class AssignableState:
    users: List[Collaborator] = field(default_factory=list)
    notice: Optional[Notice] = None
    denied: bool = False


class ProductsController(ResourceListController[Product]):
    """Products list plus create/update/delete and the assignable principals."""

    resource_name = "products"
    item_name = "product"
    collection_key = "productos"

    def __init__(self, api, *, confirm=None) -> None:
        super().__init__(api, confirm=confirm)
        self.assignable = AssignableState()

    async def fetch_collection(self, params: Dict[str, str]) -> Mapping[str, Any]:
        return await self.api.list_products(params)

    def parse_item(self, raw: Mapping[str, Any]) -> Product:
        return Product.from_api(raw)

    async def delete_item(self, item_id: str) -> Mapping[str, Any]:
        return await self.api.delete_product(item_id)

    def find(self, product_id: str) -> Optional[Product]:
        return next((p for p in self.state.items if p.id == product_id), None)

    def _reject_without_responsible(self, draft: ProductDraft) -> Optional[Notice]:
        if draft.responsible_id.strip():
            return None
        return self._set_notice(Notice.error("Select a responsible collaborator."))

    async def create(self, draft: ProductDraft) -> Notice:
        rejected = self._reject_without_responsible(draft)
        if rejected:
            return rejected
        return await self._mutate(
            lambda: self.api.create_product(draft.to_payload()),
            success="Product created.",
            failure="Could not save product.",
        )

    async def update(self, product_id: str, draft: ProductDraft) -> Notice:
        rejected = self._reject_without_responsible(draft)
        if rejected:
            return rejected
        return await self._mutate(
            lambda: self.api.update_product(product_id, draft.to_payload()),
            success="Product updated.",
            failure="Could not save product.",
        )

    async def load_assignable(self) -> AssignableState:
        """Load principals that may be set as responsible.

        A 403 is a permission notice, not a failure: the form stays usable
        but the selector is empty and explains why.
        """
        try:
            body = await self.api.users_for_assignment()
        except PermissionDeniedError:
            self.assignable = AssignableState(notice=Notice.info(ASSIGNABLE_DENIED_MESSAGE), denied=True)
        except AdminApiError as exc:
            self.assignable = AssignableState(
                notice=Notice.error(f"Could not load collaborators: {self._detail(exc)}")
            )
        else:
            raw_users = body.get("users")
            users = [Collaborator.from_api(u) for u in raw_users if isinstance(u, Mapping)] if isinstance(raw_users, list) else []
            notice = None if users else Notice.info(ASSIGNABLE_EMPTY_MESSAGE)
            self.assignable = AssignableState(users=users, notice=notice)
        return self.assignable


class ProductForm:
    """Draft handling for the create/edit dialog.

    Submitting delegates to the controller; a successful submit hides the
    form, resets the draft and clears the editing reference. A failed submit
    keeps everything so the user can correct and retry.
    """

    def __init__(self, controller: ProductsController) -> None:
        self.controller = controller
        self.draft = ProductDraft()
        self.editing: Optional[Product] = None
        self.visible = False

    def start_create(self) -> None:
        self.editing = None
        self.draft = ProductDraft()
        self.visible = True

    def start_edit(self, product: Product) -> None:
        self.editing = product
        self.draft = ProductDraft.from_product(product)
        self.visible = True

    def set_field(self, name: str, value: str) -> None:
        if name not in ProductDraft.FIELDS:
            raise KeyError(name)
        self.draft = replace(self.draft, **{name: value})

    def cancel(self) -> None:
        self.visible = False
        self.editing = None
        self.draft = ProductDraft()

    async def submit(self) -> Notice:
        if self.editing is not None:
            notice = await self.controller.update(self.editing.id, self.draft)
        else:
            notice = await self.controller.create(self.draft)
        if not notice.is_error:
            self.cancel()
        return notice


__all__ = [
    "ASSIGNABLE_DENIED_MESSAGE",
    "ASSIGNABLE_EMPTY_MESSAGE",
    "AssignableState",
    "Product",
    "ProductDraft",
    "ProductForm",
    "ProductsController",
    "ResponsibleRef",
]
