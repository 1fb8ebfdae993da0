"""
Ownership rule shared by the template and link stores.

A caller may see or change a resource when their role is elevated
(admin or compliance) or when they created it. The rule is evaluated on
every call and never cached.
"""
import logging
from typing import Callable, Iterable, List, Optional, TypeVar

from secure_upload.core.exceptions import AccessDeniedException
from secure_upload.core.logging_utils import sanitize_log_message
from secure_upload.schemas.auth import CurrentUser, UserRole

logger = logging.getLogger(__name__)

T = TypeVar("T")

ELEVATED_ROLES = frozenset({UserRole.ADMIN.value, UserRole.COMPLIANCE.value})

TEMPLATE_CREATOR_ROLES = frozenset({UserRole.ADMIN.value, UserRole.COMPLIANCE.value, UserRole.MANAGER.value})
LINK_CREATOR_ROLES = frozenset(role.value for role in UserRole)


def is_elevated(caller: CurrentUser) -> bool:
    return caller.role in ELEVATED_ROLES


def has_access(caller: CurrentUser, owner_id: Optional[str]) -> bool:
    """True when the caller is elevated or owns the resource."""
    return is_elevated(caller) or (owner_id is not None and caller.id == owner_id)


def require_access(caller: CurrentUser, owner_id: Optional[str], detail: str = "Access denied") -> None:
    """
    Require access to a resource or raise.

    Raises:
        AccessDeniedException: caller is neither elevated nor the owner
    """
    if not has_access(caller, owner_id):
        logger.warning(
            sanitize_log_message(
                "Access denied",
                UserID=caller.id,
                Role=caller.role,
                OwnerID=owner_id,
            )
        )
        raise AccessDeniedException(detail=detail)


def visible_to(caller: CurrentUser, items: Iterable[T], owner_of: Callable[[T], str]) -> List[T]:
    """Filter a list down to what the caller may see."""
    if is_elevated(caller):
        return list(items)
    return [item for item in items if owner_of(item) == caller.id]


def require_role(caller: CurrentUser, allowed_roles: Iterable[str]) -> None:
    """
    Require one of the given roles.

    Raises:
        AccessDeniedException: caller's role is not allowed
    """
    if caller.role not in allowed_roles:
        logger.warning(sanitize_log_message("Role not permitted", UserID=caller.id, Role=caller.role))
        raise AccessDeniedException(detail="Insufficient role for this operation")
