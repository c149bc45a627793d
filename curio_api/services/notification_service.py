"""
Notification Service
Best-effort notification records for lifecycle and social events.
"""

import logging
from typing import List, Optional

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..core.exceptions import NotFoundError
from ..models.notification import Notification, NotificationType

logger = logging.getLogger(__name__)


class NotificationService:
    """Service for notification operations."""

    def __init__(self, db: Session = Depends(get_db)):
        self.db = db

    async def emit(
        self,
        user_id: int,
        type: NotificationType,
        title: str,
        message: Optional[str] = None,
        link: Optional[str] = None,
        actor_id: Optional[int] = None,
        related_id: Optional[int] = None,
        related_type: Optional[str] = None,
    ) -> Optional[Notification]:
        """
        Record a notification for ``user_id``.

        Callers invoke this after their own transaction has committed. A
        failure here is logged and rolled back on its own; it never undoes the
        triggering change. Returns None when skipped or failed.
        """
        if actor_id is not None and actor_id == user_id:
            return None

        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            link=link,
            actor_id=actor_id,
            related_id=related_id,
            related_type=related_type,
        )
        try:
            self.db.add(notification)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.warning(
                "Failed to create %s notification for user %s", type.value, user_id, exc_info=True
            )
            return None

        return notification

    async def list_for_user(
        self,
        user_id: int,
        limit: int = 20,
        offset: int = 0,
        unread_only: bool = False,
    ) -> List[Notification]:
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()) \
            .offset(offset) \
            .limit(limit) \
            .all()

    async def unread_count(self, user_id: int) -> int:
        return self.db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read.is_(False)
        ).count()

    async def mark_read(self, user_id: int, notification_id: int) -> Notification:
        notification = self._get_own(user_id, notification_id)
        notification.is_read = True
        self.db.commit()
        return notification

    async def mark_all_read(self, user_id: int) -> int:
        updated = self.db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read.is_(False)
        ).update({"is_read": True}, synchronize_session=False)
        self.db.commit()
        return updated

    async def delete(self, user_id: int, notification_id: int) -> None:
        notification = self._get_own(user_id, notification_id)
        self.db.delete(notification)
        self.db.commit()

    async def clear_read(self, user_id: int) -> int:
        deleted = self.db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read.is_(True)
        ).delete(synchronize_session=False)
        self.db.commit()
        return deleted

    def _get_own(self, user_id: int, notification_id: int) -> Notification:
        notification = self.db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).first()
        if not notification:
            raise NotFoundError("Notification not found")
        return notification
