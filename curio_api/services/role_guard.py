"""
Role & Ban Guard
Checks run before any admin mutation of a user's role, ban or active state.

These functions only validate; they never touch the database. The admin
service calls them with the acting caller and the loaded target user.
"""

from typing import Union

from ..core.caller import Caller
from ..core.exceptions import ConflictError, ForbiddenError, InvalidError
from ..models.user import User, UserRole


def parse_role(value: Union[str, UserRole, None]) -> UserRole:
    """Turn caller input into a UserRole; anything outside the closed set is rejected."""
    if isinstance(value, UserRole):
        return value
    try:
        return UserRole(value)
    except ValueError:
        allowed = ", ".join(role.value for role in UserRole)
        raise InvalidError(f"Invalid role. Must be one of: {allowed}")


def check_role_change(actor: Caller, target: User, new_role: UserRole, confirmed: bool = False):
    """
    Granting or revoking admin must be explicitly confirmed by the caller.
    """
    if not actor.is_admin:
        raise ForbiddenError("Only admins can change roles")

    current = UserRole(target.role)
    touches_admin = UserRole.ADMIN in (current, new_role) and current != new_role
    if touches_admin and not confirmed:
        if new_role == UserRole.ADMIN:
            message = f"Promoting {target.username} to admin requires confirmation"
        else:
            message = f"Removing admin privileges from {target.username} requires confirmation"
        raise InvalidError(message, code="CONFIRMATION_REQUIRED")


def check_admin_delete(actor: Caller, target: User):
    """Admins delete their own account through the self-service path, not this one."""
    if not actor.is_admin:
        raise ForbiddenError("Only admins can delete other users")
    if actor.id == target.id:
        raise ConflictError("You cannot delete your own account from the admin panel")


def check_status_toggle(actor: Caller, target: User):
    """Admin accounts are never deactivated through the active/inactive toggle."""
    if not actor.is_admin:
        raise ForbiddenError("Only admins can change account status")
    if target.role == UserRole.ADMIN:
        raise ForbiddenError("Cannot deactivate admin users")


def check_ban(actor: Caller, target: User):
    if not actor.is_admin:
        raise ForbiddenError("Only admins can ban users")
    if actor.id == target.id:
        raise ConflictError("You cannot ban yourself")
