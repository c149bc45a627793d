"""
Article Service
Article lifecycle: creation, editing, status transitions, reads and deletion.

States:
    draft -> pending -> published -> archived
               |  ^                     |
               v  |                     |
           rejected / draft <-----------+ (archived -> pending)

An owner may only submit a draft or rejected article for review. Every other
transition is made by an admin.
"""

import logging
import math
import re
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple

from fastapi import Depends
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.caller import Caller
from ..core.config import settings
from ..core.database import get_db
from ..core.exceptions import ConflictError, ForbiddenError, InvalidError, NotFoundError
from ..core.pagination import Pagination, get_pagination
from ..models.article import (
    Article, ArticleLike, ArticleStatus, ArticleTag, Bookmark, Category, ReadingListItem, Tag
)
from ..models.comment import Comment, CommentLike
from ..models.notification import NotificationType
from ..models.report import ArticleReport, CommentReport
from ..models.user import Follow, User, UserRole
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


VALID_TRANSITIONS: Dict[ArticleStatus, Set[ArticleStatus]] = {
    ArticleStatus.DRAFT: {ArticleStatus.PENDING},
    ArticleStatus.PENDING: {ArticleStatus.DRAFT, ArticleStatus.PUBLISHED, ArticleStatus.REJECTED},
    ArticleStatus.PUBLISHED: {ArticleStatus.ARCHIVED},
    ArticleStatus.REJECTED: {ArticleStatus.PENDING},
    ArticleStatus.ARCHIVED: {ArticleStatus.PENDING},
}

# Transitions the article owner may perform; everything else needs an admin
OWNER_TRANSITIONS = {
    (ArticleStatus.DRAFT, ArticleStatus.PENDING),
    (ArticleStatus.REJECTED, ArticleStatus.PENDING),
}

# Transitions only an admin may perform
REVIEW_TRANSITIONS = {
    (ArticleStatus.PENDING, ArticleStatus.PUBLISHED),
    (ArticleStatus.PENDING, ArticleStatus.REJECTED),
}

INITIAL_STATUSES = {ArticleStatus.DRAFT, ArticleStatus.PENDING}


def slugify(text: str) -> str:
    """Generate URL-safe slug from text."""
    slug = text.lower()
    slug = re.sub(r'[^a-z0-9]+', '-', slug)
    return slug.strip('-') or "article"


def reading_time(content: str) -> int:
    """Minutes to read ``content``, rounded up, at least one."""
    words = len(content.split())
    return max(1, math.ceil(words / settings.WORDS_PER_MINUTE))


def delete_article_rows(db: Session, article_ids: List[int]):
    """Delete articles and everything hanging off them, children first. Caller commits."""
    if not article_ids:
        return
    comment_ids = select(Comment.id).where(Comment.article_id.in_(article_ids))
    db.query(CommentReport).filter(CommentReport.comment_id.in_(comment_ids)) \
        .delete(synchronize_session=False)
    db.query(CommentLike).filter(CommentLike.comment_id.in_(comment_ids)) \
        .delete(synchronize_session=False)
    db.query(Comment).filter(Comment.article_id.in_(article_ids)) \
        .delete(synchronize_session=False)
    for model in (ArticleLike, Bookmark, ReadingListItem, ArticleTag, ArticleReport):
        db.query(model).filter(model.article_id.in_(article_ids)) \
            .delete(synchronize_session=False)
    db.query(Article).filter(Article.id.in_(article_ids)).delete(synchronize_session=False)


class ArticleService:
    """Service for article operations."""

    def __init__(
        self,
        db: Session = Depends(get_db),
        notifications: NotificationService = Depends(),
    ):
        self.db = db
        self.notifications = notifications

    # ============ Authoring ============

    async def create(
        self,
        caller: Caller,
        title: str,
        content: str,
        status: ArticleStatus = ArticleStatus.DRAFT,
        excerpt: Optional[str] = None,
        category_id: Optional[int] = None,
        featured_image: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> Article:
        """
        Create a new article as a draft or directly submitted for review.
        """
        if caller.role not in (UserRole.AUTHOR, UserRole.ADMIN):
            raise ForbiddenError("Only authors can create articles")
        if status not in INITIAL_STATUSES:
            raise InvalidError("New articles must be created as draft or pending")
        if not title.strip() or not content.strip():
            raise InvalidError("Title and content are required")
        if category_id is not None:
            self._get_category(category_id)

        article = Article(
            title=title.strip(),
            slug=self._unique_slug(title),
            content=content,
            excerpt=excerpt,
            category_id=category_id,
            featured_image=featured_image,
            reading_time=reading_time(content),
            author_id=caller.id,
            status=status,
        )
        self.db.add(article)
        self.db.flush()

        if tags:
            self._set_tags(article.id, tags)

        self.db.commit()
        self.db.refresh(article)

        logger.info("Article %s created by user %s as %s", article.id, caller.id, status.value)
        return article

    async def update(
        self,
        article_id: int,
        caller: Caller,
        title: Optional[str] = None,
        content: Optional[str] = None,
        excerpt: Optional[str] = None,
        category_id: Optional[int] = None,
        featured_image: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> Article:
        """Edit article fields. Status is never changed here."""
        article = self._get_for_update(article_id)
        if not caller.can_manage(article.author_id):
            raise ForbiddenError("Not authorized to update this article")

        if title is not None and title.strip() and title.strip() != article.title:
            article.title = title.strip()
            article.slug = self._unique_slug(title, exclude_id=article.id)
        if content is not None and content.strip():
            article.content = content
            article.reading_time = reading_time(content)
        if excerpt is not None:
            article.excerpt = excerpt
        if category_id is not None:
            self._get_category(category_id)
            article.category_id = category_id
        if featured_image is not None:
            article.featured_image = featured_image or None
        if tags is not None:
            self._set_tags(article.id, tags)

        self.db.commit()
        self.db.refresh(article)
        return article

    async def delete(self, article_id: int, caller: Caller) -> None:
        """
        Delete an article and everything hanging off it, children first.
        """
        article = self._get_for_update(article_id)
        if not caller.can_manage(article.author_id):
            raise ForbiddenError("Not authorized to delete this article")

        delete_article_rows(self.db, [article_id])
        self.db.commit()

        logger.info("Article %s deleted by user %s", article_id, caller.id)

    # ============ Status transitions ============

    async def submit_for_review(self, article_id: int, caller: Caller) -> Article:
        """
        Submit article for review.
        State: draft | rejected -> pending (owner), archived -> pending (admin)
        """
        return await self._transition(
            article_id, caller, ArticleStatus.PENDING, {"rejected_reason": None}
        )

    async def withdraw(self, article_id: int, caller: Caller) -> Article:
        """
        Pull an article back out of the review queue. Admin only.
        State: pending -> draft
        """
        return await self._transition(article_id, caller, ArticleStatus.DRAFT)

    async def archive(self, article_id: int, caller: Caller) -> Article:
        """
        Take a published article offline. Admin only.
        State: published -> archived
        """
        return await self._transition(article_id, caller, ArticleStatus.ARCHIVED)

    async def approve(self, article_id: int, caller: Caller) -> Article:
        """
        Approve and publish an article.
        State: pending -> published

        ``published_at`` keeps its first value when an article is re-approved.
        """
        if not caller.is_admin:
            raise ForbiddenError("Only admins can review articles")

        now = datetime.utcnow()
        article = await self._transition(
            article_id,
            caller,
            ArticleStatus.PUBLISHED,
            {
                "published_at": func.coalesce(Article.published_at, now),
                "reviewed_by": caller.id,
                "reviewed_at": now,
                "rejected_reason": None,
            },
        )

        await self.notifications.emit(
            user_id=article.author_id,
            type=NotificationType.ARTICLE_PUBLISHED,
            title="Your article has been published",
            message=f'"{article.title}" was approved and is now live.',
            link=f"/articles/{article.slug}",
            actor_id=caller.id,
            related_id=article.id,
            related_type="article",
        )
        return article

    async def reject(self, article_id: int, caller: Caller, reason: Optional[str]) -> Article:
        """
        Reject an article with a reason.
        State: pending -> rejected
        """
        if not caller.is_admin:
            raise ForbiddenError("Only admins can review articles")
        if not reason or not reason.strip():
            raise InvalidError("A rejection reason is required")

        article = await self._transition(
            article_id,
            caller,
            ArticleStatus.REJECTED,
            {
                "rejected_reason": reason,
                "reviewed_by": caller.id,
                "reviewed_at": datetime.utcnow(),
            },
        )

        await self.notifications.emit(
            user_id=article.author_id,
            type=NotificationType.ARTICLE_REJECTED,
            title="Your article was not approved",
            message=f'"{article.title}" was rejected: {reason}',
            link=f"/dashboard/articles/{article.id}/edit",
            actor_id=caller.id,
            related_id=article.id,
            related_type="article",
        )
        return article

    async def toggle_featured(self, article_id: int, caller: Caller) -> Article:
        """Flip ``is_featured``; only published articles can be featured."""
        if not caller.is_admin:
            raise ForbiddenError("Only admins can feature articles")

        article = self._get_for_update(article_id)
        if article.status != ArticleStatus.PUBLISHED:
            raise InvalidError("Only published articles can be featured")

        article.is_featured = not article.is_featured
        self.db.commit()
        self.db.refresh(article)

        logger.info("Article %s featured=%s by admin %s", article.id, article.is_featured, caller.id)
        return article

    async def _transition(
        self,
        article_id: int,
        caller: Caller,
        target: ArticleStatus,
        values: Optional[dict] = None,
    ) -> Article:
        """
        Move an article to ``target``.

        The write is conditional on the status read here, so two concurrent
        requests cannot both apply the same transition.
        """
        article = self._get_for_update(article_id)
        current = ArticleStatus(article.status)

        legal = target in VALID_TRANSITIONS[current]

        if (current, target) in REVIEW_TRANSITIONS:
            if not caller.is_admin:
                raise ForbiddenError("Only admins can review articles")
        elif not caller.can_manage(article.author_id):
            raise ForbiddenError("Not authorized to change this article")
        elif legal and not caller.is_admin and (current, target) not in OWNER_TRANSITIONS:
            raise ForbiddenError(
                f"Only admins can move an article from {current.value} to {target.value}"
            )

        if not legal:
            raise ConflictError(f"Cannot move an article from {current.value} to {target.value}")

        updated = self.db.query(Article).filter(
            Article.id == article_id,
            Article.status == current
        ).update({"status": target, **(values or {})}, synchronize_session=False)

        if updated == 0:
            self.db.rollback()
            raise ConflictError("Article status changed concurrently; reload and retry")

        self.db.commit()
        self.db.refresh(article)

        logger.info(
            "Article %s transitioned: %s -> %s (by user %s)",
            article_id, current.value, target.value, caller.id
        )
        return article

    # ============ Reads ============

    async def get_by_slug(self, slug: str, caller: Optional[Caller] = None) -> Article:
        """
        Get a single article by slug.

        Published articles are visible to everyone and count a view unless the
        reader is the author. Anything else is visible to its author and admins only.
        """
        article = self.db.query(Article).filter(Article.slug == slug).first()
        if not article:
            raise NotFoundError("Article not found")

        if article.status != ArticleStatus.PUBLISHED:
            if caller is None or not caller.can_manage(article.author_id):
                raise ForbiddenError("You are not allowed to view this article")
            return article

        if caller is None or not caller.owns(article.author_id):
            await self.increment_views(article.id)
            self.db.refresh(article)

        return article

    async def increment_views(self, article_id: int):
        """Increment article view count."""
        self.db.query(Article).filter(Article.id == article_id).update(
            {"view_count": Article.view_count + 1}, synchronize_session=False
        )
        self.db.commit()

    async def list_published(
        self,
        page: int = 1,
        per_page: Optional[int] = None,
        category: Optional[str] = None,
        tag: Optional[str] = None,
        author: Optional[str] = None,
        search_query: Optional[str] = None,
        featured: Optional[bool] = None,
    ) -> Tuple[List[Article], Pagination]:
        """
        List published articles with pagination.
        """
        query = self.db.query(Article).filter(Article.status == ArticleStatus.PUBLISHED)

        if category:
            query = query.join(Article.category).filter(Category.slug == category)
        if tag:
            tagged = select(ArticleTag.article_id).join(Tag, Tag.id == ArticleTag.tag_id) \
                .where(Tag.slug == tag)
            query = query.filter(Article.id.in_(tagged))
        if author:
            query = query.join(Article.author).filter(User.username == author)
        if search_query:
            pattern = f"%{search_query}%"
            query = query.filter(or_(Article.title.ilike(pattern), Article.excerpt.ilike(pattern)))
        if featured:
            query = query.filter(Article.is_featured.is_(True))

        pagination = get_pagination(page, per_page, query.count())
        articles = query.order_by(Article.published_at.desc(), Article.id.desc()) \
            .offset(pagination.offset) \
            .limit(pagination.limit) \
            .all()

        return articles, pagination

    async def list_following_feed(
        self,
        caller: Caller,
        page: int = 1,
        per_page: Optional[int] = None,
    ) -> Tuple[List[Article], Pagination]:
        """Published articles by the authors the caller follows, newest first."""
        followed = select(Follow.following_id).where(Follow.follower_id == caller.id)
        query = self.db.query(Article).filter(
            Article.status == ArticleStatus.PUBLISHED,
            Article.author_id.in_(followed)
        )

        pagination = get_pagination(page, per_page, query.count())
        articles = query.order_by(Article.published_at.desc(), Article.id.desc()) \
            .offset(pagination.offset) \
            .limit(pagination.limit) \
            .all()

        return articles, pagination

    async def list_all(
        self,
        status: Optional[ArticleStatus] = None,
        search_query: Optional[str] = None,
        author_id: Optional[int] = None,
    ) -> List[Article]:
        """Articles in any state, newest first, for moderation and author dashboards."""
        query = self.db.query(Article)
        if status is not None:
            query = query.filter(Article.status == status)
        if author_id is not None:
            query = query.filter(Article.author_id == author_id)
        if search_query:
            pattern = f"%{search_query}%"
            query = query.join(Article.author).filter(
                or_(Article.title.ilike(pattern), User.username.ilike(pattern))
            )
        return query.order_by(Article.created_at.desc(), Article.id.desc()).all()

    # ============ Reader actions ============

    async def toggle_like(self, article_id: int, caller: Caller) -> Tuple[bool, int]:
        """Like or unlike a published article. Returns the new liked state and like count."""
        article = self._get_published(article_id)

        removed = self.db.query(ArticleLike).filter(
            ArticleLike.article_id == article_id,
            ArticleLike.user_id == caller.id
        ).delete(synchronize_session=False)

        liked = removed == 0
        if liked:
            try:
                self.db.add(ArticleLike(article_id=article_id, user_id=caller.id))
                self.db.flush()
            except IntegrityError:
                # A concurrent request already inserted the like
                self.db.rollback()

        self._refresh_like_count(article_id)
        self.db.commit()
        self.db.refresh(article)

        if liked:
            await self.notifications.emit(
                user_id=article.author_id,
                type=NotificationType.LIKE,
                title="New like on your article",
                message=f'Someone liked "{article.title}".',
                link=f"/articles/{article.slug}",
                actor_id=caller.id,
                related_id=article.id,
                related_type="article",
            )
        return liked, article.like_count

    async def toggle_bookmark(self, article_id: int, caller: Caller) -> bool:
        """Add or remove a bookmark. Returns the new bookmarked state."""
        self._get(article_id)

        removed = self.db.query(Bookmark).filter(
            Bookmark.article_id == article_id,
            Bookmark.user_id == caller.id
        ).delete(synchronize_session=False)
        if removed == 0:
            self.db.add(Bookmark(article_id=article_id, user_id=caller.id))
        self.db.commit()
        return removed == 0

    # ============ Helpers ============

    def _get(self, article_id: int) -> Article:
        article = self.db.query(Article).filter(Article.id == article_id).first()
        if not article:
            raise NotFoundError("Article not found")
        return article

    def _get_for_update(self, article_id: int) -> Article:
        article = self.db.query(Article).filter(Article.id == article_id) \
            .with_for_update() \
            .first()
        if not article:
            raise NotFoundError("Article not found")
        return article

    def _get_published(self, article_id: int) -> Article:
        article = self._get(article_id)
        if article.status != ArticleStatus.PUBLISHED:
            raise InvalidError("Only published articles accept this action")
        return article

    def _get_category(self, category_id: int) -> Category:
        category = self.db.query(Category).filter(Category.id == category_id).first()
        if not category:
            raise NotFoundError("Category not found")
        return category

    def _unique_slug(self, title: str, exclude_id: Optional[int] = None) -> str:
        """Slug for ``title``, suffixed with -1, -2, ... until no other article uses it."""
        base = slugify(title)
        slug = base
        counter = 1
        while True:
            query = self.db.query(Article.id).filter(Article.slug == slug)
            if exclude_id is not None:
                query = query.filter(Article.id != exclude_id)
            if query.first() is None:
                return slug
            slug = f"{base}-{counter}"
            counter += 1

    def _set_tags(self, article_id: int, names: Iterable[str]):
        """Replace the article's tags, creating unknown tags by name."""
        self.db.query(ArticleTag).filter(ArticleTag.article_id == article_id) \
            .delete(synchronize_session=False)

        seen = set()
        for raw in names:
            name = raw.strip()
            if not name:
                continue
            tag_slug = slugify(name)
            if tag_slug in seen:
                continue
            seen.add(tag_slug)

            tag = self.db.query(Tag).filter(Tag.slug == tag_slug).first()
            if tag is None:
                tag = Tag(name=name, slug=tag_slug)
                self.db.add(tag)
                self.db.flush()
            self.db.add(ArticleTag(article_id=article_id, tag_id=tag.id))
        self.db.flush()
        # Article.tags is a viewonly relationship
        self.db.expire_all()

    def _refresh_like_count(self, article_id: int):
        likes = select(func.count(ArticleLike.id)) \
            .where(ArticleLike.article_id == article_id) \
            .scalar_subquery()
        self.db.query(Article).filter(Article.id == article_id) \
            .update({"like_count": likes}, synchronize_session=False)
