"""
Domain: Back-office users and their permissions.

Owners hold every permission. Workers get a fixed default set. Per-user
overrides stored on the user row win over the role defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Mapping
from uuid import UUID


class UserRole(str, Enum):
    OWNER = "Owner"
    WORKER = "Worker"


class Permission(str, Enum):
    VIEW_SALES = "view_sales"
    CREATE_SALES = "create_sales"
    EDIT_SALES = "edit_sales"
    EDIT_INSTALLMENTS = "edit_installments"
    RECORD_PAYMENTS = "record_payments"
    VIEW_FINANCIAL = "view_financial"
    MANAGE_FINANCIAL = "manage_financial"
    VIEW_PROFIT = "view_profit"


WORKER_PERMISSIONS: FrozenSet[Permission] = frozenset(
    {
        Permission.VIEW_SALES,
        Permission.CREATE_SALES,
        Permission.EDIT_SALES,
        Permission.EDIT_INSTALLMENTS,
        Permission.RECORD_PAYMENTS,
        Permission.VIEW_FINANCIAL,
    }
)


@dataclass(frozen=True, slots=True)
class User:
    """Back-office user acting on sales."""

    user_id: UUID
    name: str
    role: UserRole
    active: bool = True
    # Explicit grants (True) and revocations (False) by permission name.
    permissions: Mapping[str, bool] = field(default_factory=dict)

    def has_permission(self, permission: Permission) -> bool:
        if not self.active:
            return False
        if self.role is UserRole.OWNER:
            return True
        override = self.permissions.get(permission.value)
        if override is not None:
            return bool(override)
        return permission in WORKER_PERMISSIONS


def parse_permission_overrides(raw: object) -> Dict[str, bool]:
    """Keep only known permission names from a stored overrides mapping."""

    if not isinstance(raw, Mapping):
        return {}
    known = {p.value for p in Permission}
    return {str(k): bool(v) for k, v in raw.items() if str(k) in known}


__all__ = ["Permission", "User", "UserRole", "WORKER_PERMISSIONS", "parse_permission_overrides"]
