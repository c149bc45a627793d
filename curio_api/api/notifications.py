"""
Notification API endpoints.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from ..core.caller import Caller
from ..models.notification import NotificationType
from ..services.notification_service import NotificationService
from .auth import get_active_caller, get_current_user

router = APIRouter()


class NotificationResponse(BaseModel):
    id: int
    type: NotificationType
    title: str
    message: Optional[str]
    link: Optional[str]
    actor_id: Optional[int]
    actor_username: Optional[str]
    related_id: Optional[int]
    related_type: Optional[str]
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


@router.get("/", response_model=List[NotificationResponse])
async def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    unread: bool = False,
    caller: Caller = Depends(get_current_user),
    notification_service: NotificationService = Depends()
):
    """Newest first."""
    return await notification_service.list_for_user(
        caller.id, limit=limit, offset=offset, unread_only=unread
    )


@router.get("/unread-count")
async def unread_count(
    caller: Caller = Depends(get_current_user),
    notification_service: NotificationService = Depends()
):
    return {"unread_count": await notification_service.unread_count(caller.id)}


@router.put("/read-all")
async def mark_all_read(
    caller: Caller = Depends(get_active_caller),
    notification_service: NotificationService = Depends()
):
    updated = await notification_service.mark_all_read(caller.id)
    return {"message": "All notifications marked as read", "updated": updated}


@router.delete("/clear-read")
async def clear_read(
    caller: Caller = Depends(get_active_caller),
    notification_service: NotificationService = Depends()
):
    deleted = await notification_service.clear_read(caller.id)
    return {"message": "Read notifications cleared", "deleted": deleted}


@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: int,
    caller: Caller = Depends(get_active_caller),
    notification_service: NotificationService = Depends()
):
    return await notification_service.mark_read(caller.id, notification_id)


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    caller: Caller = Depends(get_active_caller),
    notification_service: NotificationService = Depends()
):
    await notification_service.delete(caller.id, notification_id)
    return {"message": "Notification deleted"}
