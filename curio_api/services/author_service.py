"""
Author Service
Dashboard figures for an author's own articles.
"""

from typing import Dict, List

from fastapi import Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.caller import Caller
from ..core.database import get_db
from ..core.exceptions import ForbiddenError, NotFoundError
from ..models.article import Article, ArticleLike, ArticleStatus, Bookmark
from ..models.comment import Comment
from ..models.user import UserRole

TOP_ARTICLES = 5


class AuthorService:
    def __init__(self, db: Session = Depends(get_db)):
        self.db = db

    async def get_dashboard(self, caller: Caller) -> Dict:
        """
        Article counts per status, lifetime totals from the article counters and
        the most viewed published articles.
        """
        self._require_author(caller)

        statistics = {status.value: 0 for status in ArticleStatus}
        rows = self.db.query(Article.status, func.count(Article.id)) \
            .filter(Article.author_id == caller.id) \
            .group_by(Article.status) \
            .all()
        for status, count in rows:
            statistics[ArticleStatus(status).value] = count
        statistics["total"] = sum(count for _, count in rows)

        views, likes, comments = self.db.query(
            func.coalesce(func.sum(Article.view_count), 0),
            func.coalesce(func.sum(Article.like_count), 0),
            func.coalesce(func.sum(Article.comment_count), 0),
        ).filter(Article.author_id == caller.id).one()
        statistics.update(total_views=views, total_likes=likes, total_comments=comments)

        top_articles: List[Article] = self.db.query(Article) \
            .filter(Article.author_id == caller.id, Article.status == ArticleStatus.PUBLISHED) \
            .order_by(Article.view_count.desc(), Article.id.desc()) \
            .limit(TOP_ARTICLES) \
            .all()

        return {"statistics": statistics, "top_articles": top_articles}

    async def get_article_stats(self, caller: Caller, article_id: int) -> Dict:
        """Engagement for one article. Other people's articles look missing."""
        self._require_author(caller)

        article = self.db.query(Article).filter(Article.id == article_id).first()
        if not article or not caller.can_manage(article.author_id):
            raise NotFoundError("Article not found or you do not have access")

        likes = self.db.query(ArticleLike).filter(ArticleLike.article_id == article_id).count()
        comments = self.db.query(Comment) \
            .filter(Comment.article_id == article_id, Comment.is_approved.is_(True)) \
            .count()
        bookmarks = self.db.query(Bookmark).filter(Bookmark.article_id == article_id).count()

        # Likes and comments per hundred views
        engagement_rate = round((likes + comments) / max(article.view_count, 1) * 100, 2)

        return {
            "article": article,
            "statistics": {
                "total_views": article.view_count,
                "total_likes": likes,
                "total_comments": comments,
                "total_bookmarks": bookmarks,
                "engagement_rate": engagement_rate,
            },
        }

    def _require_author(self, caller: Caller):
        if caller.role not in (UserRole.AUTHOR, UserRole.ADMIN):
            raise ForbiddenError("Author access required")
