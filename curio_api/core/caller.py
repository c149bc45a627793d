"""Caller identity threaded explicitly into every service operation."""

from dataclasses import dataclass

from ..models.user import User, UserRole


@dataclass(frozen=True)
class Caller:
    """Who is making the request, as resolved by the authentication dependency."""
    id: int
    role: UserRole
    is_banned: bool = False

    @classmethod
    def from_user(cls, user: User) -> "Caller":
        return cls(id=user.id, role=UserRole(user.role), is_banned=bool(user.is_banned))

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def owns(self, owner_id: int) -> bool:
        return self.id == owner_id

    def can_manage(self, owner_id: int) -> bool:
        """Owner or admin."""
        return self.is_admin or self.owns(owner_id)
