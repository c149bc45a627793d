"""
Comment Service
Threaded comments, comment moderation and comment likes.
"""

import logging
from typing import List, Optional, Set, Tuple

from fastapi import Depends
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..core.caller import Caller
from ..core.database import get_db
from ..core.exceptions import ForbiddenError, InvalidError, NotFoundError
from ..models.article import Article, ArticleStatus
from ..models.comment import Comment, CommentLike
from ..models.notification import NotificationType
from ..models.report import CommentReport
from .notification_service import NotificationService
from .report_service import CommentReportService

logger = logging.getLogger(__name__)


def collect_thread(db: Session, root_ids: List[int]) -> Set[int]:
    """Ids of the given comments and all of their replies, at any depth."""
    found: Set[int] = set(root_ids)
    frontier = list(root_ids)
    while frontier:
        children = [
            row[0] for row in db.query(Comment.id).filter(Comment.parent_id.in_(frontier)).all()
        ]
        frontier = [cid for cid in children if cid not in found]
        found.update(frontier)
    return found


def delete_comment_rows(db: Session, comment_ids: Set[int]):
    """Delete comments with their reports and likes. Caller commits."""
    if not comment_ids:
        return
    ids = list(comment_ids)
    db.query(CommentReport).filter(CommentReport.comment_id.in_(ids)).delete(synchronize_session=False)
    db.query(CommentLike).filter(CommentLike.comment_id.in_(ids)).delete(synchronize_session=False)
    db.query(Comment).filter(Comment.id.in_(ids)).delete(synchronize_session=False)


def refresh_comment_count(db: Session, article_id: int):
    """Recompute ``Article.comment_count`` from the comment rows."""
    count = select(func.count(Comment.id)).where(Comment.article_id == article_id).scalar_subquery()
    db.query(Article).filter(Article.id == article_id) \
        .update({"comment_count": count}, synchronize_session=False)


def refresh_comment_like_count(db: Session, comment_id: int):
    likes = select(func.count(CommentLike.id)).where(CommentLike.comment_id == comment_id).scalar_subquery()
    db.query(Comment).filter(Comment.id == comment_id) \
        .update({"like_count": likes}, synchronize_session=False)


class CommentService:
    """Service for comment operations."""

    def __init__(
        self,
        db: Session = Depends(get_db),
        notifications: NotificationService = Depends(),
    ):
        self.db = db
        self.notifications = notifications

    async def create(
        self,
        caller: Caller,
        article_id: int,
        content: str,
        parent_id: Optional[int] = None
    ) -> Comment:
        """
        Create a new comment or reply.
        A reply must point at a comment on the same article.
        """
        if not content or not content.strip():
            raise InvalidError("Comment content is required")

        article = self.db.query(Article).filter(Article.id == article_id).first()
        if not article:
            raise NotFoundError("Article not found")
        if article.status != ArticleStatus.PUBLISHED:
            raise InvalidError("Comments are only open on published articles")

        parent = None
        if parent_id is not None:
            parent = self.db.query(Comment).filter(
                Comment.id == parent_id,
                Comment.article_id == article_id
            ).first()
            if not parent:
                raise NotFoundError("Parent comment not found")

        comment = Comment(
            content=content.strip(),
            article_id=article_id,
            user_id=caller.id,
            parent_id=parent_id
        )
        self.db.add(comment)
        self.db.flush()
        refresh_comment_count(self.db, article_id)
        self.db.commit()
        self.db.refresh(comment)

        if parent is not None:
            await self.notifications.emit(
                user_id=parent.user_id,
                type=NotificationType.REPLY,
                title="New reply to your comment",
                message=comment.content[:200],
                link=f"/articles/{article.slug}#comment-{comment.id}",
                actor_id=caller.id,
                related_id=comment.id,
                related_type="comment",
            )
        else:
            await self.notifications.emit(
                user_id=article.author_id,
                type=NotificationType.COMMENT,
                title="New comment on your article",
                message=comment.content[:200],
                link=f"/articles/{article.slug}#comment-{comment.id}",
                actor_id=caller.id,
                related_id=comment.id,
                related_type="comment",
            )

        return comment

    async def update(self, comment_id: int, caller: Caller, content: str) -> Comment:
        """Edit own comment."""
        if not content or not content.strip():
            raise InvalidError("Comment content is required")

        comment = self._get(comment_id)
        if not caller.owns(comment.user_id):
            raise ForbiddenError("You can only edit your own comments")

        comment.content = content.strip()
        self.db.commit()
        self.db.refresh(comment)
        return comment

    async def delete(self, comment_id: int, caller: Caller) -> int:
        """
        Delete a comment and its whole reply thread.
        Allowed for the comment author, the article author, or an admin.
        Returns the number of comments removed.
        """
        comment = self._get(comment_id)
        self._check_moderator(comment, caller, "delete")

        article_id = comment.article_id
        thread = collect_thread(self.db, [comment.id])
        delete_comment_rows(self.db, thread)
        refresh_comment_count(self.db, article_id)
        self.db.commit()

        logger.info("Comment %s deleted by user %s (%s removed)", comment_id, caller.id, len(thread))
        return len(thread)

    async def approve(self, comment_id: int, caller: Caller) -> Comment:
        """
        Approve a comment. Allowed for the comment author, the article author or an admin.

        Reports are cleared only when the article author or an admin approves, so
        a reported user cannot dismiss reports against their own comment.
        """
        comment = self._get(comment_id)
        self._check_moderator(comment, caller, "approve")

        comment.is_approved = True
        if caller.is_admin or self._is_article_author(comment, caller):
            self.db.flush()
            await CommentReportService(self.db).dismiss_all(comment.id)
        else:
            self.db.commit()
        self.db.refresh(comment)

        logger.info("Comment %s approved by user %s", comment_id, caller.id)
        return comment

    async def get_article_comments(self, article_id: int, caller: Optional[Caller] = None) -> List[Comment]:
        """
        Approved comments for an article, oldest first; replies carry ``parent_id``.
        Comments on unpublished articles are visible to the same people as the article.
        """
        article = self.db.query(Article).filter(Article.id == article_id).first()
        if not article:
            raise NotFoundError("Article not found")
        if article.status != ArticleStatus.PUBLISHED:
            if caller is None or not caller.can_manage(article.author_id):
                raise ForbiddenError("You are not allowed to view these comments")

        return self.db.query(Comment) \
            .options(joinedload(Comment.author)) \
            .filter(Comment.article_id == article_id, Comment.is_approved.is_(True)) \
            .order_by(Comment.created_at.asc(), Comment.id.asc()) \
            .all()

    async def list_for_moderation(self, status: Optional[str] = None) -> List[dict]:
        """
        All comments with their live report counts for the admin panel.
        ``status`` is one of pending, approved, reported.
        """
        counts = CommentReportService(self.db).report_counts()
        report_count = func.coalesce(counts.c.report_count, 0)
        query = self.db.query(Comment, report_count) \
            .options(joinedload(Comment.author), joinedload(Comment.article)) \
            .outerjoin(counts, counts.c.target_id == Comment.id)

        if status == "pending":
            query = query.filter(Comment.is_approved.is_(False))
        elif status == "approved":
            query = query.filter(Comment.is_approved.is_(True))
        elif status == "reported":
            query = query.filter(report_count > 0)
        elif status is not None:
            raise InvalidError("Status must be one of: pending, approved, reported")

        rows = query.order_by(Comment.created_at.desc(), Comment.id.desc()).all()
        return [{"comment": comment, "report_count": count} for comment, count in rows]

    async def toggle_like(self, comment_id: int, caller: Caller) -> Tuple[bool, int]:
        """Like or unlike a comment. Returns the new liked state and like count."""
        comment = self._get(comment_id)

        removed = self.db.query(CommentLike).filter(
            CommentLike.comment_id == comment_id,
            CommentLike.user_id == caller.id
        ).delete(synchronize_session=False)

        liked = removed == 0
        if liked:
            try:
                self.db.add(CommentLike(comment_id=comment_id, user_id=caller.id))
                self.db.flush()
            except IntegrityError:
                self.db.rollback()

        refresh_comment_like_count(self.db, comment_id)
        self.db.commit()
        self.db.refresh(comment)
        return liked, comment.like_count

    def _get(self, comment_id: int) -> Comment:
        comment = self.db.query(Comment).filter(Comment.id == comment_id).first()
        if not comment:
            raise NotFoundError("Comment not found")
        return comment

    def _is_article_author(self, comment: Comment, caller: Caller) -> bool:
        article_author = self.db.query(Article.author_id).filter(Article.id == comment.article_id).scalar()
        return caller.owns(article_author)

    def _check_moderator(self, comment: Comment, caller: Caller, action: str):
        if caller.is_admin or caller.owns(comment.user_id):
            return
        if self._is_article_author(comment, caller):
            return
        raise ForbiddenError(f"You do not have permission to {action} this comment")
