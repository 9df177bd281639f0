"""
Sale operation errors and results.

Every mutating service operation returns an `OperationResult`. Rejections
(validation, concurrency conflict, permission, unknown sale) are raised as
`SaleOperationError` subclasses inside the service and turned into a failed
result at the service boundary, before any write happens. Store failures
(`RuntimeError`) are not rejections and propagate to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List
from uuid import UUID


class SaleOperationError(Exception):
    """Base class for rejected sale operations."""

    code: str = "REJECTED"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(SaleOperationError):
    """Missing or inconsistent input; nothing was written."""

    code = "VALIDATION"


class ConcurrencyConflictError(SaleOperationError):
    """A parcel changed availability since it was selected; nothing was written."""

    code = "CONFLICT"

    def __init__(self, message: str, parcel_ids: List[UUID] | None = None):
        self.parcel_ids = parcel_ids or []
        super().__init__(message)


class PermissionDeniedError(SaleOperationError):
    code = "FORBIDDEN"

    def __init__(self, permission: str, actor: str):
        self.permission = permission
        self.actor = actor
        super().__init__(f"User {actor} lacks permission '{permission}'")


class SaleNotFoundError(SaleOperationError):
    code = "NOT_FOUND"

    def __init__(self, sale_id: UUID):
        self.sale_id = sale_id
        super().__init__(f"Sale {sale_id} not found")


@dataclass(frozen=True, slots=True)
class OperationResult:
    """
    Result of a mutating sale operation.

    success: True if every step was committed
    sale_ids: Sales created or changed (a split yields two)
    error_code: Stable code of the rejection (None on success)
    errors: Human-readable messages (empty if success=True)
    """

    success: bool
    sale_ids: List[UUID] = field(default_factory=list)
    error_code: str | None = None
    errors: List[str] = field(default_factory=list)

    @classmethod
    def ok(cls, *sale_ids: UUID) -> "OperationResult":
        return cls(success=True, sale_ids=list(sale_ids))

    @classmethod
    def rejected(cls, error: SaleOperationError) -> "OperationResult":
        return cls(success=False, error_code=error.code, errors=[error.message])


__all__ = [
    "ConcurrencyConflictError",
    "OperationResult",
    "PermissionDeniedError",
    "SaleNotFoundError",
    "SaleOperationError",
    "ValidationError",
]
