"""
Shared API dependencies.

Provides the record store, the acting user (from the `X-User-Id` header), and
the mapping from service results to HTTP errors.
"""

from functools import lru_cache
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException

from domain.user import User
from repositories.record_store import RecordStore, SupabaseRecordStore
from repositories.user_repository import get_user_by_id
from services.errors import OperationResult

# Rejection code -> HTTP status
STATUS_BY_ERROR_CODE = {
    "VALIDATION": 400,
    "FORBIDDEN": 403,
    "NOT_FOUND": 404,
    "CONFLICT": 409,
}


@lru_cache(maxsize=1)
def get_store() -> RecordStore:
    """Shared Supabase-backed record store (overridden in tests)."""
    return SupabaseRecordStore()


def store_unavailable(action: str, error: Exception) -> HTTPException:
    return HTTPException(
        status_code=503,
        detail=f"Failed to {action}: {error}. The data store is unavailable, retry shortly.",
    )


def get_current_user(
    store: RecordStore = Depends(get_store),
    x_user_id: Optional[str] = Header(None, description="ID of the acting back-office user"),
) -> Optional[User]:
    """
    Resolve the acting user.

    An absent, malformed or unknown id yields None; the service then denies
    the operation.
    """
    if not x_user_id:
        return None
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        return None

    try:
        return get_user_by_id(store, user_id)
    except RuntimeError as e:
        raise store_unavailable("load the acting user", e)


def raise_for_result(result: OperationResult) -> None:
    """Turn a rejected operation into an HTTPException with a matching status."""
    if result.success:
        return
    raise HTTPException(
        status_code=STATUS_BY_ERROR_CODE.get(result.error_code or "", 400),
        detail={"error_code": result.error_code, "errors": result.errors},
    )
