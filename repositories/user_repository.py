"""
User repository for back-office staff.

Users are read for permission checks and to show who recorded a payment or
created a sale.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional
from uuid import UUID

from domain.user import User, UserRole, parse_permission_overrides
from repositories.record_store import RecordStore

USERS_TABLE: str = "users"


def _row_to_user(row: Mapping[str, Any]) -> User:
    return User(
        user_id=UUID(str(row["id"])),
        name=str(row.get("name") or ""),
        role=UserRole(str(row.get("role") or UserRole.WORKER.value)),
        active=str(row.get("status") or "Active") == "Active",
        permissions=parse_permission_overrides(row.get("permissions")),
    )


def get_user_by_id(store: RecordStore, user_id: UUID) -> Optional[User]:
    rows = store.query(USERS_TABLE, {"id": user_id})
    if not rows:
        return None
    return _row_to_user(rows[0])


def list_users(store: RecordStore) -> List[User]:
    rows = store.query(USERS_TABLE, order_by="name")
    return [_row_to_user(row) for row in rows]


__all__ = ["USERS_TABLE", "get_user_by_id", "list_users"]
