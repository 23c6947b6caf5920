"""
Notification fan-out and inbox read-state operations.

`notify` is the only code path that creates Notification rows. It writes the
row in the caller's unit of work (so a booking and its confirmation commit or
roll back together) and schedules the real-time push for after the commit:

  caller: add booking -> notify() -> commit
                                       |
  background job:                      +-> emit "new_notification" {full payload}
                                             |
  background job, once that succeeded:       +-> emit "unread_count_update" {count}

The two emits are separate jobs; a retry only resends the frame that
failed. The unread count is re-queried rather than incremented, so
concurrent reads/writes never leave a client with a drifting badge. A user
with no live session is skipped; the row is still there on the next poll.
"""

from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.core.metrics import notifications_created, record_push
from app.db.session import get_session_factory
from app.infrastructure.realtime import get_realtime_hub
from app.models.notification import NOTIFICATION_TYPES, Notification
from app.schemas.notification import NotificationResponse
from app.services.background import schedule_after_commit, task_runner

logger = get_logger(__name__)


async def notify(
    db: AsyncSession,
    user_id: int,
    type: str,
    message: str,
    link: Optional[str] = None,
    related_booking_id: Optional[int] = None,
    related_user_id: Optional[int] = None,
    related_athlete_id: Optional[int] = None,
) -> Notification:
    """Persist an unread notification and push it once the transaction commits."""
    if not user_id or not message:
        raise ValidationError("Notification requires a recipient and a message")
    if type not in NOTIFICATION_TYPES:
        raise ValidationError(f"Unknown notification type '{type}'")

    notification = Notification(
        user_id=user_id,
        type=type,
        message=message,
        link=link,
        related_booking_id=related_booking_id,
        related_user_id=related_user_id,
        related_athlete_id=related_athlete_id,
        is_read=False,
    )
    db.add(notification)
    await db.flush()
    await db.refresh(notification)

    notifications_created.labels(type=type).inc()
    logger.info("notification_created", notification_id=notification.id, user_id=user_id, type=type)

    payload = NotificationResponse.model_validate(notification).model_dump(mode="json")
    schedule_after_commit(db, "notification_push", lambda: push_notification(user_id, payload))
    return notification


async def count_unread(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        )
    )
    return result.scalar_one()


async def push_notification(user_id: int, payload: dict) -> None:
    """Deliver a committed notification, then queue the unread-count refresh."""
    hub = get_realtime_hub()
    if not hub.is_reachable(user_id):
        record_push("skipped")
        logger.debug("notification_push_skipped", user_id=user_id, notification_id=payload.get("id"))
        return

    try:
        await hub.emit(user_id, "new_notification", payload)
    except Exception as e:
        record_push("failed")
        logger.warning("notification_push_failed", user_id=user_id, notification_id=payload.get("id"), error=str(e))
        raise

    record_push("delivered")
    logger.debug("notification_pushed", user_id=user_id, notification_id=payload.get("id"))
    task_runner.submit("unread_count_push", lambda: push_unread_count(user_id))


async def push_unread_count(user_id: int) -> None:
    async with get_session_factory()() as session:
        unread = await count_unread(session, user_id)
    await get_realtime_hub().emit(user_id, "unread_count_update", {"count": unread})
    logger.debug("unread_count_pushed", user_id=user_id, unread=unread)


async def list_notifications(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Notification], int, int]:
    """Newest-first page of the caller's notifications, plus unread and total counts."""
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    notifications = list(result.scalars().all())

    total = (
        await db.execute(select(func.count(Notification.id)).where(Notification.user_id == user_id))
    ).scalar_one()
    unread = await count_unread(db, user_id)
    return notifications, unread, total


async def mark_read(db: AsyncSession, user_id: int, notification_ids: list[int]) -> tuple[int, int]:
    """Mark the caller's own notifications read. Returns (modified, unread_count)."""
    if not notification_ids:
        raise ValidationError("No notification IDs provided to mark as read.")

    result = await db.execute(
        update(Notification)
        .where(
            Notification.id.in_(notification_ids),
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        )
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    unread = await count_unread(db, user_id)
    logger.info("notifications_marked_read", user_id=user_id, modified=result.rowcount, unread=unread)
    return result.rowcount, unread


async def mark_all_read(db: AsyncSession, user_id: int) -> tuple[int, int]:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    unread = await count_unread(db, user_id)
    logger.info("notifications_marked_read", user_id=user_id, modified=result.rowcount, mark_all=True)
    return result.rowcount, unread


async def delete_notification(db: AsyncSession, user_id: int, notification_id: int) -> int:
    """Delete one of the caller's notifications. Returns the fresh unread count."""
    result = await db.execute(
        delete(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFoundError("Notification not found or you are not authorized to delete it.")

    logger.info("notification_deleted", user_id=user_id, notification_id=notification_id)
    return await count_unread(db, user_id)
