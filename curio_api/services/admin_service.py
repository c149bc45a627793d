"""
Admin Service
User management, author applications and dashboard statistics.

Every user mutation goes through the role guard before touching the row.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import Depends
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ..core.caller import Caller
from ..core.database import get_db
from ..core.exceptions import ConflictError, ForbiddenError, InvalidError, NotFoundError
from ..models.article import Article, ArticleStatus, Category
from ..models.comment import Comment
from ..models.user import AuthorProfile, AuthorStatus, User, UserRole
from . import role_guard
from .user_service import delete_user_rows

logger = logging.getLogger(__name__)

USER_STATUS_FILTERS = ("active", "inactive", "banned")


class AdminService:
    """Service for admin-only operations on users."""

    def __init__(self, db: Session = Depends(get_db)):
        self.db = db

    async def get_dashboard(self, caller: Caller) -> dict:
        """Site-wide counts plus the five newest articles and users."""
        self._require_admin(caller)

        def count_articles(status: ArticleStatus) -> int:
            return self.db.query(Article).filter(Article.status == status).count()

        statistics = {
            "total_users": self.db.query(User).count(),
            "total_articles": self.db.query(Article).count(),
            "published_articles": count_articles(ArticleStatus.PUBLISHED),
            "pending_articles": count_articles(ArticleStatus.PENDING),
            "total_categories": self.db.query(Category).count(),
            "total_comments": self.db.query(Comment).count(),
            "pending_authors": self.db.query(AuthorProfile)
            .filter(AuthorProfile.author_status == AuthorStatus.PENDING)
            .count(),
        }
        recent_articles = self.db.query(Article) \
            .options(joinedload(Article.author)) \
            .order_by(Article.created_at.desc(), Article.id.desc()) \
            .limit(5) \
            .all()
        recent_users = self.db.query(User) \
            .order_by(User.created_at.desc(), User.id.desc()) \
            .limit(5) \
            .all()

        return {
            "statistics": statistics,
            "recent_articles": recent_articles,
            "recent_users": recent_users,
        }

    # ============ Users ============

    async def list_users(
        self,
        caller: Caller,
        role: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[User]:
        self._require_admin(caller)

        query = self.db.query(User)
        if role:
            query = query.filter(User.role == role_guard.parse_role(role))
        if status == "active":
            query = query.filter(User.is_active.is_(True))
        elif status == "inactive":
            query = query.filter(User.is_active.is_(False))
        elif status == "banned":
            query = query.filter(User.is_banned.is_(True))
        elif status:
            raise InvalidError(f"Status must be one of: {', '.join(USER_STATUS_FILTERS)}")
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                User.username.ilike(pattern),
                User.email.ilike(pattern),
                User.full_name.ilike(pattern),
            ))
        return query.order_by(User.created_at.desc(), User.id.desc()).all()

    async def update_role(
        self,
        caller: Caller,
        user_id: int,
        role: str,
        confirmed: bool = False,
    ) -> User:
        new_role = role_guard.parse_role(role)
        user = self._get_user(user_id, for_update=True)
        role_guard.check_role_change(caller, user, new_role, confirmed)

        old_role = UserRole(user.role)
        user.role = new_role
        self.db.commit()
        self.db.refresh(user)

        logger.info("Admin %s changed role of user %s: %s -> %s",
                    caller.id, user.id, old_role.value, new_role.value)
        return user

    async def ban(self, caller: Caller, user_id: int) -> User:
        """Block the user from mutating anything. Their content stays as it is."""
        user = self._get_user(user_id, for_update=True)
        role_guard.check_ban(caller, user)
        if user.is_banned:
            raise ConflictError("User is already banned")

        user.is_banned = True
        self.db.commit()
        self.db.refresh(user)

        logger.info("Admin %s banned user %s", caller.id, user.id)
        return user

    async def unban(self, caller: Caller, user_id: int) -> User:
        user = self._get_user(user_id, for_update=True)
        role_guard.check_ban(caller, user)
        if not user.is_banned:
            raise ConflictError("User is not banned")

        user.is_banned = False
        self.db.commit()
        self.db.refresh(user)

        logger.info("Admin %s unbanned user %s", caller.id, user.id)
        return user

    async def toggle_status(self, caller: Caller, user_id: int) -> User:
        """Flip ``is_active``. A deactivated account can no longer log in."""
        user = self._get_user(user_id, for_update=True)
        role_guard.check_status_toggle(caller, user)

        user.is_active = not user.is_active
        self.db.commit()
        self.db.refresh(user)

        logger.info("Admin %s set user %s active=%s", caller.id, user.id, user.is_active)
        return user

    async def delete_user(self, caller: Caller, user_id: int) -> None:
        user = self._get_user(user_id)
        role_guard.check_admin_delete(caller, user)

        delete_user_rows(self.db, user.id)
        self.db.commit()

        logger.info("Admin %s deleted user %s", caller.id, user_id)

    # ============ Author applications ============

    async def list_pending_authors(self, caller: Caller) -> List[AuthorProfile]:
        self._require_admin(caller)
        return self.db.query(AuthorProfile) \
            .options(joinedload(AuthorProfile.user)) \
            .filter(AuthorProfile.author_status == AuthorStatus.PENDING) \
            .order_by(AuthorProfile.created_at.asc()) \
            .all()

    async def approve_author(self, caller: Caller, user_id: int) -> AuthorProfile:
        self._require_admin(caller)
        profile = self._get_profile(user_id)
        if profile.author_status == AuthorStatus.APPROVED:
            raise ConflictError("Author is already approved")

        profile.author_status = AuthorStatus.APPROVED
        profile.approved_by = caller.id
        profile.approved_at = datetime.utcnow()
        user = profile.user
        if user.role == UserRole.USER:
            user.role = UserRole.AUTHOR
        self.db.commit()
        self.db.refresh(profile)

        logger.info("Admin %s approved author application of user %s", caller.id, user_id)
        return profile

    async def reject_author(self, caller: Caller, user_id: int) -> AuthorProfile:
        """Suspend the application and drop the user back to a reader."""
        self._require_admin(caller)
        profile = self._get_profile(user_id)
        if profile.author_status == AuthorStatus.SUSPENDED:
            raise ConflictError("Author application is already rejected")

        profile.author_status = AuthorStatus.SUSPENDED
        user = profile.user
        if user.role == UserRole.AUTHOR:
            user.role = UserRole.USER
        self.db.commit()
        self.db.refresh(profile)

        logger.info("Admin %s rejected author application of user %s", caller.id, user_id)
        return profile

    def _require_admin(self, caller: Caller):
        if not caller.is_admin:
            raise ForbiddenError("Admin access required")

    def _get_user(self, user_id: int, for_update: bool = False) -> User:
        query = self.db.query(User).filter(User.id == user_id)
        if for_update:
            query = query.with_for_update()
        user = query.first()
        if not user:
            raise NotFoundError("User not found")
        return user

    def _get_profile(self, user_id: int) -> AuthorProfile:
        profile = self.db.query(AuthorProfile).filter(AuthorProfile.user_id == user_id).first()
        if not profile:
            raise NotFoundError("Author application not found")
        return profile
