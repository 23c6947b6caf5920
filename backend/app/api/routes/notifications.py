"""
Notification inbox endpoints. Everything is scoped to the caller.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import commit, get_db
from app.schemas.notification import (
    MarkReadRequest,
    MarkReadResponse,
    NotificationListResponse,
    NotificationResponse,
)
from app.services import notification_service
from app.core.security import get_current_user_id

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Newest-first notifications with the current unread count."""
    notifications, unread, total = await notification_service.list_notifications(db, user_id, page, limit)
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        unread_count=unread,
        total=total,
        page=page,
        limit=limit,
    )


@router.put("/mark-read", response_model=MarkReadResponse)
async def mark_read(
    body: MarkReadRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Mark specific notifications, or all of them, as read."""
    if body.mark_all:
        modified, unread = await notification_service.mark_all_read(db, user_id)
    else:
        modified, unread = await notification_service.mark_read(db, user_id, body.notification_ids)
    await commit(db)
    return MarkReadResponse(message=f"{modified} notification(s) marked as read.", unread_count=unread)


@router.delete("/{notification_id}", response_model=MarkReadResponse)
async def delete_notification(
    notification_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Delete one of the caller's notifications."""
    unread = await notification_service.delete_notification(db, user_id, notification_id)
    await commit(db)
    return MarkReadResponse(message="Notification deleted successfully.", unread_count=unread)
