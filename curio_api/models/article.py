"""
Article models.
Articles, categories, tags and per-user article state (likes, bookmarks, reading list).
"""

from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Boolean, ForeignKey, UniqueConstraint, Enum as SQLEnum
)
from sqlalchemy.orm import relationship

from ..core.database import Base


class ArticleStatus(str, Enum):
    """Article publishing status."""
    DRAFT = "draft"
    PENDING = "pending"
    PUBLISHED = "published"
    REJECTED = "rejected"
    ARCHIVED = "archived"


class Category(Base):
    """Article category (Technology, Health, etc.)"""
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, index=True, nullable=False)
    slug = Column(String(100), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    articles = relationship("Article", back_populates="category")


class Tag(Base):
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, nullable=False)
    slug = Column(String(60), unique=True, nullable=False)


class ArticleTag(Base):
    __tablename__ = "article_tags"
    __table_args__ = (UniqueConstraint("article_id", "tag_id", name="uq_article_tags_pair"),)

    id = Column(Integer, primary_key=True)
    article_id = Column(Integer, ForeignKey("articles.id"), nullable=False, index=True)
    tag_id = Column(Integer, ForeignKey("tags.id"), nullable=False)


class Article(Base):
    """
    Article model.
    Status transitions are owned by ArticleService.
    """
    __tablename__ = "articles"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(500), nullable=False, index=True)
    slug = Column(String(520), unique=True, index=True, nullable=False)
    excerpt = Column(Text, nullable=True)
    content = Column(Text, nullable=False)
    featured_image = Column(String(500), nullable=True)
    reading_time = Column(Integer, default=1)

    # Author and category
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)

    # Publishing status
    status = Column(
        SQLEnum(ArticleStatus, name="article_status", values_callable=lambda e: [m.value for m in e]),
        default=ArticleStatus.DRAFT,
        nullable=False,
        index=True,
    )
    is_featured = Column(Boolean, default=False, nullable=False)

    # Review
    rejected_reason = Column(Text, nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    # Metrics
    view_count = Column(Integer, default=0, nullable=False)
    like_count = Column(Integer, default=0, nullable=False)
    comment_count = Column(Integer, default=0, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    published_at = Column(DateTime, nullable=True)

    # Relationships
    author = relationship("User", back_populates="articles", foreign_keys=[author_id])
    category = relationship("Category", back_populates="articles")
    tags = relationship("Tag", secondary="article_tags", viewonly=True)

    @property
    def tag_names(self):
        return [tag.name for tag in self.tags]

    @property
    def author_username(self):
        return self.author.username if self.author else None

    @property
    def category_slug(self):
        return self.category.slug if self.category else None


class ArticleLike(Base):
    __tablename__ = "article_likes"
    __table_args__ = (UniqueConstraint("article_id", "user_id", name="uq_article_likes_pair"),)

    id = Column(Integer, primary_key=True)
    article_id = Column(Integer, ForeignKey("articles.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class Bookmark(Base):
    """
    User bookmarks for reading later.
    """
    __tablename__ = "bookmarks"
    __table_args__ = (UniqueConstraint("article_id", "user_id", name="uq_bookmarks_pair"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    article_id = Column(Integer, ForeignKey("articles.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    article = relationship("Article")


class ReadingListItem(Base):
    """Reading list entry; ``read_at`` is set when the user marks it read."""
    __tablename__ = "reading_list"
    __table_args__ = (UniqueConstraint("article_id", "user_id", name="uq_reading_list_pair"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    article_id = Column(Integer, ForeignKey("articles.id"), nullable=False, index=True)
    is_read = Column(Boolean, default=False, nullable=False)
    added_at = Column(DateTime, default=datetime.utcnow)
    read_at = Column(DateTime, nullable=True)

    article = relationship("Article")
