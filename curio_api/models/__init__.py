"""Database models for Curio."""
from .user import User, UserRole, AuthorProfile, AuthorStatus, Follow
from .article import (
    Article, ArticleStatus, Category, Tag, ArticleTag, ArticleLike, Bookmark, ReadingListItem
)
from .comment import Comment, CommentLike
from .report import ArticleReport, CommentReport
from .notification import Notification, NotificationType
