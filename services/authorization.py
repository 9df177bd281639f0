"""
Permission gate for sale operations.

Every mutating operation names the permission it needs; the acting user is
checked before anything is read for the operation itself.
"""

from __future__ import annotations

import logging
from typing import Optional

from domain.user import Permission, User
from services.errors import PermissionDeniedError

logger = logging.getLogger(__name__)


def require_permission(actor: Optional[User], permission: Permission) -> User:
    """
    Ensure the actor holds a permission.

    Args:
        actor: Acting user (None for an unknown user)
        permission: Permission the operation needs

    Returns:
        The actor, for chaining

    Raises:
        PermissionDeniedError: Unknown, inactive, or unauthorized actor
    """

    if actor is None:
        logger.warning("Denied %s to an unknown user", permission.value)
        raise PermissionDeniedError(permission.value, "unknown")
    if not actor.has_permission(permission):
        logger.warning("Denied %s to user %s (%s)", permission.value, actor.user_id, actor.role.value)
        raise PermissionDeniedError(permission.value, str(actor.user_id))
    return actor


__all__ = ["require_permission"]
