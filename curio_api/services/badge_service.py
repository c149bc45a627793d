"""
Badge Service
Badges are worked out from a user's activity on every request; nothing is stored.
"""

from dataclasses import dataclass
from typing import List, Tuple

from fastapi import Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.database import get_db
from ..core.exceptions import NotFoundError
from ..models.article import Article, ArticleStatus
from ..models.comment import Comment
from ..models.user import Follow, User


# (badge, stat, threshold): the badge is earned once the stat reaches the threshold
BADGE_RULES: List[Tuple[str, str, int]] = [
    ("first_article", "articles_published", 1),
    ("prolific_writer", "articles_published", 10),
    ("master_author", "articles_published", 50),
    ("popular", "total_likes", 100),
    ("viral", "max_views", 1000),
    ("conversationalist", "comments_made", 50),
    ("influencer", "followers", 100),
    ("networker", "following", 50),
]

EARLY_ADOPTER = "early_adopter"


@dataclass
class UserStats:
    articles_published: int = 0
    total_likes: int = 0
    max_views: int = 0
    comments_made: int = 0
    followers: int = 0
    following: int = 0


def earned_badges(stats: UserStats, joined_at) -> List[str]:
    badges = [name for name, stat, threshold in BADGE_RULES if getattr(stats, stat) >= threshold]
    if joined_at is not None and joined_at <= settings.EARLY_ADOPTER_CUTOFF:
        badges.append(EARLY_ADOPTER)
    return badges


class BadgeService:
    def __init__(self, db: Session = Depends(get_db)):
        self.db = db

    async def get_stats(self, user_id: int) -> UserStats:
        """Activity counters. Article figures cover published articles only."""
        published, likes, views = self.db.query(
            func.count(Article.id),
            func.coalesce(func.sum(Article.like_count), 0),
            func.coalesce(func.max(Article.view_count), 0),
        ).filter(
            Article.author_id == user_id,
            Article.status == ArticleStatus.PUBLISHED
        ).one()

        return UserStats(
            articles_published=published,
            total_likes=likes,
            max_views=views,
            comments_made=self.db.query(Comment).filter(Comment.user_id == user_id).count(),
            followers=self.db.query(Follow).filter(Follow.following_id == user_id).count(),
            following=self.db.query(Follow).filter(Follow.follower_id == user_id).count(),
        )

    async def get_badges(self, username: str) -> Tuple[List[str], UserStats]:
        user = self.db.query(User).filter(User.username == username).first()
        if not user:
            raise NotFoundError("User not found")

        stats = await self.get_stats(user.id)
        return earned_badges(stats, user.created_at), stats
