"""
User Service
Accounts, follows, bookmarks, reading list and author applications.

Features:
- Registration and password login
- Self-service account deletion with full cleanup
- Follow / unfollow with notifications
- Bookmarks and reading list
- Apply to become an author
"""

import logging
import re
from datetime import datetime
from typing import List, Optional

from fastapi import Depends
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..core.caller import Caller
from ..core.database import get_db
from ..core.exceptions import (
    AuthenticationError, ConflictError, ForbiddenError, InvalidError, NotFoundError
)
from ..core.security import get_password_hash, verify_password
from ..models.article import Article, ArticleLike, ArticleStatus, Bookmark, ReadingListItem
from ..models.comment import Comment, CommentLike
from ..models.notification import Notification, NotificationType
from ..models.report import ArticleReport, CommentReport
from ..models.user import AuthorProfile, AuthorStatus, Follow, User, UserRole
from .article_service import delete_article_rows
from .comment_service import collect_thread, delete_comment_rows, refresh_comment_count
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{3,20}$")
MIN_PASSWORD_LENGTH = 8
SELF_REGISTER_ROLES = {UserRole.USER, UserRole.AUTHOR}


def delete_user_rows(db: Session, user_id: int):
    """
    Remove a user and everything they own or left behind. Caller commits.

    Counters on other users' articles and comments are recomputed from the
    remaining rows.
    """
    # Own articles, with their comments, likes, reports and tags
    article_ids = [row[0] for row in db.query(Article.id).filter(Article.author_id == user_id).all()]
    delete_article_rows(db, article_ids)

    # Comments on other articles, with their reply threads
    own_comments = db.query(Comment.id, Comment.article_id).filter(Comment.user_id == user_id).all()
    touched_articles = {article_id for _, article_id in own_comments}
    delete_comment_rows(db, collect_thread(db, [comment_id for comment_id, _ in own_comments]))
    for article_id in touched_articles:
        refresh_comment_count(db, article_id)

    # Likes given
    liked_articles = select(ArticleLike.article_id).where(ArticleLike.user_id == user_id)
    liked_comments = select(CommentLike.comment_id).where(CommentLike.user_id == user_id)
    article_ids_liked = [row[0] for row in db.execute(liked_articles).all()]
    comment_ids_liked = [row[0] for row in db.execute(liked_comments).all()]
    db.query(ArticleLike).filter(ArticleLike.user_id == user_id).delete(synchronize_session=False)
    db.query(CommentLike).filter(CommentLike.user_id == user_id).delete(synchronize_session=False)
    if article_ids_liked:
        db.query(Article).filter(Article.id.in_(article_ids_liked)).update({
            "like_count": select(func.count(ArticleLike.id))
            .where(ArticleLike.article_id == Article.id)
            .scalar_subquery()
        }, synchronize_session=False)
    if comment_ids_liked:
        db.query(Comment).filter(Comment.id.in_(comment_ids_liked)).update({
            "like_count": select(func.count(CommentLike.id))
            .where(CommentLike.comment_id == Comment.id)
            .scalar_subquery()
        }, synchronize_session=False)

    # Reports filed
    db.query(ArticleReport).filter(ArticleReport.user_id == user_id).delete(synchronize_session=False)
    db.query(CommentReport).filter(CommentReport.user_id == user_id).delete(synchronize_session=False)
    db.query(Comment).filter(
        Comment.is_reported.is_(True),
        Comment.id.notin_(select(CommentReport.comment_id))
    ).update({"is_reported": False}, synchronize_session=False)

    # Per-user state
    for model in (Bookmark, ReadingListItem):
        db.query(model).filter(model.user_id == user_id).delete(synchronize_session=False)
    db.query(Follow).filter(
        or_(Follow.follower_id == user_id, Follow.following_id == user_id)
    ).delete(synchronize_session=False)
    db.query(Notification).filter(Notification.user_id == user_id).delete(synchronize_session=False)
    db.query(Notification).filter(Notification.actor_id == user_id) \
        .update({"actor_id": None}, synchronize_session=False)

    # References held by other rows
    db.query(AuthorProfile).filter(AuthorProfile.user_id == user_id).delete(synchronize_session=False)
    db.query(AuthorProfile).filter(AuthorProfile.approved_by == user_id) \
        .update({"approved_by": None}, synchronize_session=False)
    db.query(Article).filter(Article.reviewed_by == user_id) \
        .update({"reviewed_by": None}, synchronize_session=False)

    db.query(User).filter(User.id == user_id).delete(synchronize_session=False)


class UserService:
    """Service for account and reader operations."""

    def __init__(
        self,
        db: Session = Depends(get_db),
        notifications: NotificationService = Depends(),
    ):
        self.db = db
        self.notifications = notifications

    # ============ Accounts ============

    async def register(
        self,
        email: str,
        username: str,
        password: str,
        full_name: str,
        role: UserRole = UserRole.USER,
    ) -> User:
        """
        Create an account. Registering as an author also opens a pending
        author application.
        """
        if not USERNAME_PATTERN.match(username or ""):
            raise InvalidError("Username must be 3-20 characters: letters, numbers and underscores")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise InvalidError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if not full_name or not full_name.strip():
            raise InvalidError("Full name is required")
        if role not in SELF_REGISTER_ROLES:
            raise InvalidError("You can only register as a user or an author")

        email = email.lower()
        existing = self.db.query(User).filter(
            or_(User.email == email, User.username == username)
        ).first()
        if existing:
            field = "Email" if existing.email == email else "Username"
            raise ConflictError(f"{field} already registered")

        user = User(
            email=email,
            username=username,
            password_hash=get_password_hash(password),
            full_name=full_name.strip(),
            role=role,
        )
        try:
            self.db.add(user)
            self.db.flush()
            if role == UserRole.AUTHOR:
                self.db.add(AuthorProfile(user_id=user.id, author_status=AuthorStatus.PENDING))
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Email or username already registered")

        self.db.refresh(user)
        logger.info("User %s registered as %s", user.id, role.value)
        return user

    async def authenticate(self, email: str, password: str) -> User:
        """Check credentials and record the login time."""
        user = self.db.query(User).filter(User.email == email.lower()).first()
        if not user or not verify_password(password, user.password_hash):
            raise AuthenticationError("Incorrect email or password")
        if not user.is_active:
            raise ForbiddenError("Account is deactivated")

        user.last_login = datetime.utcnow()
        self.db.commit()
        return user

    async def get_by_id(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("User not found")
        return user

    async def get_by_username(self, username: str) -> User:
        user = self.db.query(User).filter(User.username == username).first()
        if not user:
            raise NotFoundError("User not found")
        return user

    async def update_profile(
        self,
        caller: Caller,
        full_name: Optional[str] = None,
        bio: Optional[str] = None,
        profile_image: Optional[str] = None,
    ) -> User:
        """Update display fields. An empty bio or image clears it; full name cannot be blank."""
        user = await self.get_by_id(caller.id)
        if full_name is None and bio is None and profile_image is None:
            raise InvalidError("No fields to update")

        if full_name is not None:
            if not full_name.strip():
                raise InvalidError("Full name cannot be empty")
            user.full_name = full_name.strip()
        if bio is not None:
            user.bio = bio or None
        if profile_image is not None:
            user.profile_image = profile_image or None

        self.db.commit()
        self.db.refresh(user)
        return user

    async def change_password(self, caller: Caller, current_password: str, new_password: str) -> None:
        user = await self.get_by_id(caller.id)
        if not verify_password(current_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect")
        if len(new_password or "") < MIN_PASSWORD_LENGTH:
            raise InvalidError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        user.password_hash = get_password_hash(new_password)
        self.db.commit()
        logger.info("User %s changed their password", caller.id)

    async def delete_account(self, caller: Caller) -> None:
        """Delete the caller's own account. Admins may do this too."""
        await self.get_by_id(caller.id)
        delete_user_rows(self.db, caller.id)
        self.db.commit()
        logger.info("User %s deleted their account", caller.id)

    # ============ Follows ============

    async def follow(self, caller: Caller, username: str) -> Follow:
        target = await self.get_by_username(username)
        if target.id == caller.id:
            raise ConflictError("You cannot follow yourself")

        follow = Follow(follower_id=caller.id, following_id=target.id)
        try:
            self.db.add(follow)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(f"You are already following {target.username}")

        follower = await self.get_by_id(caller.id)
        await self.notifications.emit(
            user_id=target.id,
            type=NotificationType.FOLLOW,
            title="New follower",
            message=f"{follower.username} started following you.",
            link=f"/users/{follower.username}",
            actor_id=caller.id,
            related_id=caller.id,
            related_type="user",
        )
        return follow

    async def unfollow(self, caller: Caller, username: str) -> None:
        target = await self.get_by_username(username)
        removed = self.db.query(Follow).filter(
            Follow.follower_id == caller.id,
            Follow.following_id == target.id
        ).delete(synchronize_session=False)
        if removed == 0:
            raise NotFoundError(f"You are not following {target.username}")
        self.db.commit()

    async def get_following(self, user_id: int) -> List[User]:
        return self.db.query(User) \
            .join(Follow, Follow.following_id == User.id) \
            .filter(Follow.follower_id == user_id) \
            .order_by(Follow.created_at.desc()) \
            .all()

    async def get_followers(self, user_id: int) -> List[User]:
        return self.db.query(User) \
            .join(Follow, Follow.follower_id == User.id) \
            .filter(Follow.following_id == user_id) \
            .order_by(Follow.created_at.desc()) \
            .all()

    # ============ Bookmarks and reading list ============

    async def get_bookmarks(self, caller: Caller) -> List[Article]:
        """Bookmarked articles that are still published, newest bookmark first."""
        return self.db.query(Article) \
            .join(Bookmark, Bookmark.article_id == Article.id) \
            .filter(Bookmark.user_id == caller.id, Article.status == ArticleStatus.PUBLISHED) \
            .order_by(Bookmark.created_at.desc()) \
            .all()

    async def get_reading_list(self, caller: Caller, unread_only: bool = False) -> List[ReadingListItem]:
        query = self.db.query(ReadingListItem) \
            .options(joinedload(ReadingListItem.article)) \
            .filter(ReadingListItem.user_id == caller.id)
        if unread_only:
            query = query.filter(ReadingListItem.is_read.is_(False))
        return query.order_by(ReadingListItem.added_at.desc()).all()

    async def add_to_reading_list(self, caller: Caller, article_id: int) -> ReadingListItem:
        article = self.db.query(Article).filter(Article.id == article_id).first()
        if not article or article.status != ArticleStatus.PUBLISHED:
            raise NotFoundError("Article not found")

        item = ReadingListItem(article_id=article_id, user_id=caller.id)
        try:
            self.db.add(item)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Article is already in your reading list")
        self.db.refresh(item)
        return item

    async def mark_as_read(self, caller: Caller, article_id: int) -> ReadingListItem:
        item = self._get_reading_list_item(caller, article_id)
        item.is_read = True
        item.read_at = datetime.utcnow()
        self.db.commit()
        return item

    async def remove_from_reading_list(self, caller: Caller, article_id: int) -> None:
        item = self._get_reading_list_item(caller, article_id)
        self.db.delete(item)
        self.db.commit()

    def _get_reading_list_item(self, caller: Caller, article_id: int) -> ReadingListItem:
        item = self.db.query(ReadingListItem).filter(
            ReadingListItem.user_id == caller.id,
            ReadingListItem.article_id == article_id
        ).first()
        if not item:
            raise NotFoundError("Article not in reading list")
        return item

    # ============ Author applications ============

    async def apply_as_author(
        self,
        caller: Caller,
        display_name: Optional[str] = None,
        expertise: Optional[str] = None,
    ) -> AuthorProfile:
        """
        Open an author application. The role switches to author straight away;
        the profile stays pending until an admin reviews it.
        """
        if caller.role in (UserRole.AUTHOR, UserRole.ADMIN):
            raise ConflictError("You are already an author")

        existing = self.db.query(AuthorProfile).filter(AuthorProfile.user_id == caller.id).first()
        if existing:
            raise ConflictError(
                f"Author application already submitted ({AuthorStatus(existing.author_status).value})"
            )

        profile = AuthorProfile(
            user_id=caller.id,
            author_status=AuthorStatus.PENDING,
            display_name=display_name,
            expertise=expertise,
        )
        self.db.add(profile)
        self.db.query(User).filter(User.id == caller.id) \
            .update({"role": UserRole.AUTHOR}, synchronize_session=False)
        self.db.commit()
        self.db.refresh(profile)

        logger.info("User %s applied to become an author", caller.id)
        return profile
