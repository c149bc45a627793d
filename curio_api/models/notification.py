"""
Notification model.
"""

from datetime import datetime
from enum import Enum
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Boolean, Enum as SQLEnum
from sqlalchemy.orm import relationship

from ..core.database import Base


class NotificationType(str, Enum):
    """Types of notifications"""
    FOLLOW = "follow"
    COMMENT = "comment"
    REPLY = "reply"
    LIKE = "like"
    ARTICLE_APPROVED = "article_approved"
    ARTICLE_REJECTED = "article_rejected"
    ARTICLE_PUBLISHED = "article_published"
    OTHER = "other"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(
        SQLEnum(NotificationType, name="notification_type", values_callable=lambda e: [m.value for m in e]),
        default=NotificationType.OTHER,
        nullable=False,
    )
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    link = Column(String(500), nullable=True)
    actor_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    related_id = Column(Integer, nullable=True)
    related_type = Column(String(50), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    actor = relationship("User", foreign_keys=[actor_id])

    @property
    def actor_username(self):
        return self.actor.username if self.actor else None
