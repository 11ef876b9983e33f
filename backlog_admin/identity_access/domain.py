"""
Identity domain constants and simple helpers.

Why:
- Centralize the role and product status vocabularies so the controllers, the
  console components and the CLI agree on wire values and labels.
- Presentation helpers never fail on unknown values: the backend may introduce
  roles before this console knows about them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

# Wire values as stored by the backend. The developer tier is plural there.
ALLOWED_ROLES = frozenset({"user", "developers", "scrum_master", "product_owner", "super_admin"})
DEFAULT_ROLE = "user"

_ROLE_ALIASES = {"developer": "developers"}


@dataclass(frozen=True)
class RoleInfo:
    value: str
    label: str
    tone: str


ROLE_OPTIONS: Tuple[RoleInfo, ...] = (
    RoleInfo("user", "User", "gray"),
    RoleInfo("developers", "Developer", "blue"),
    RoleInfo("scrum_master", "Scrum Master", "green"),
    RoleInfo("product_owner", "Product Owner", "yellow"),
    RoleInfo("super_admin", "Super Admin", "purple"),
)

_ROLE_BY_VALUE = {info.value: info for info in ROLE_OPTIONS}

# Navigation visibility only; the backend enforces permissions.
PRODUCT_MANAGER_ROLES = frozenset({"product_owner", "super_admin"})
COLLABORATOR_MANAGER_ROLES = frozenset({"super_admin"})


def normalize_role(value: Optional[str]) -> Optional[str]:
    """Return the canonical wire value for `value`, or None if it is not a known role."""
    if not value:
        return None
    key = str(value).strip().lower()
    key = _ROLE_ALIASES.get(key, key)
    return key if key in ALLOWED_ROLES else None


def role_info(value: Optional[str]) -> RoleInfo:
    """Label and tone for a role; unknown values render neutrally with their raw text."""
    canonical = normalize_role(value)
    if canonical:
        return _ROLE_BY_VALUE[canonical]
    raw = str(value).strip() if value else ""
    return RoleInfo(raw, raw or "Unknown", "neutral")


@dataclass(frozen=True)
class StatusInfo:
    value: str
    label: str
    tone: str


PRODUCT_STATUSES: Tuple[StatusInfo, ...] = (
    StatusInfo("activo", "Active", "green"),
    StatusInfo("inactivo", "Inactive", "gray"),
    StatusInfo("completado", "Completed", "blue"),
)
DEFAULT_PRODUCT_STATUS = "activo"

_STATUS_BY_VALUE = {info.value: info for info in PRODUCT_STATUSES}


def status_info(value: Optional[str]) -> StatusInfo:
    info = _STATUS_BY_VALUE.get((value or "").strip().lower())
    if info:
        return info
    raw = str(value).strip() if value else ""
    return StatusInfo(raw, raw or "Unknown", "neutral")


__all__ = [
    "ALLOWED_ROLES",
    "DEFAULT_ROLE",
    "ROLE_OPTIONS",
    "RoleInfo",
    "normalize_role",
    "role_info",
    "PRODUCT_MANAGER_ROLES",
    "COLLABORATOR_MANAGER_ROLES",
    "PRODUCT_STATUSES",
    "DEFAULT_PRODUCT_STATUS",
    "StatusInfo",
    "status_info",
]
