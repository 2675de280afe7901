"""
In-app notifications: persistence, real-time push and read state.

Creating a notification is a best-effort side effect of some other
operation, so `NotificationDispatcher.notify` logs failures and never raises.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from scholarhub.errors import AccessDenied, NotFound
from scholarhub.models.notification import Notification
from scholarhub.schemas.notification import NotificationResponse, NotificationType
from scholarhub.services.realtime_service import ConnectionManager, connection_manager
from scholarhub.utils.payload import dump_payload

logger = logging.getLogger("scholarhub.notifications")


def notification_to_response(n: Notification) -> NotificationResponse:
    return NotificationResponse(
        id=n.id,
        type=n.type,
        title=n.title,
        message=n.message,
        data=n.payload,
        read=bool(n.read),
        created_at=n.created_at,
    )


class NotificationDispatcher:
    def __init__(self, realtime: ConnectionManager | None = None):
        self.realtime = realtime or connection_manager

    async def notify(
        self,
        db: Session,
        user_id: str,
        type: NotificationType | str,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> Notification | None:
        try:
            notification = Notification(
                id=str(uuid.uuid4()),
                user_id=user_id,
                type=NotificationType(type).value,
                title=title,
                message=message,
                data=dump_payload(data or {}),
                read=False,
                created_at=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            )
            db.add(notification)
            db.commit()
            db.refresh(notification)
        except Exception:
            db.rollback()
            logger.exception("Could not create %s notification for user %s", type, user_id)
            return None

        try:
            payload = notification_to_response(notification).model_dump()
            await self.realtime.emit(user_id, "notification", payload)
        except Exception:
            # The stored row is the durable copy; the client picks it up on its next fetch.
            logger.exception("Could not push notification %s to user %s", notification.id, user_id)
        return notification

    async def send_deadline_reminder(self, db: Session, user_id: str, scholarship_id: str,
                                     scholarship_name: str, days_left: int):
        return await self.notify(
            db, user_id, NotificationType.DEADLINE_REMINDER,
            "Scholarship Deadline Reminder",
            f'The deadline for "{scholarship_name}" is approaching in {days_left} days. Don\'t miss out!',
            {"scholarshipId": scholarship_id, "daysLeft": days_left},
        )

    async def send_new_scholarship_alert(self, db: Session, user_id: str, scholarship_id: str,
                                         scholarship_name: str):
        return await self.notify(
            db, user_id, NotificationType.NEW_SCHOLARSHIP,
            "New Scholarship Available",
            f'A new scholarship "{scholarship_name}" has been added that may interest you.',
            {"scholarshipId": scholarship_id},
        )

    async def send_bulk(self, db: Session, user_ids: list[str], type: NotificationType | str,
                        title: str, message: str, data: dict[str, Any] | None = None) -> int:
        created = 0
        for user_id in user_ids:
            if await self.notify(db, user_id, type, title, message, data) is not None:
                created += 1
        return created


def list_for_user(
    db: Session,
    user_id: str,
    page: int = 1,
    limit: int = 20,
    unread_only: bool = False,
) -> tuple[list[Notification], int]:
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    total = query.count()
    items = (
        query.order_by(Notification.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def unread_count(db: Session, user_id: str) -> int:
    return (
        db.query(func.count(Notification.id))
        .filter(Notification.user_id == user_id, Notification.read.is_(False))
        .scalar()
    )


def _get_owned(db: Session, notification_id: str, user_id: str) -> Notification:
    notification = db.query(Notification).filter(Notification.id == notification_id).first()
    if not notification:
        raise NotFound("Notification not found")
    if notification.user_id != user_id:
        raise AccessDenied()
    return notification


def mark_read(db: Session, notification_id: str, user_id: str) -> Notification:
    """Idempotent: marking an already-read notification is a no-op."""
    notification = _get_owned(db, notification_id, user_id)
    if not notification.read:
        notification.read = True
        db.commit()
        db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: str) -> int:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read.is_(False))
        .update({Notification.read: True}, synchronize_session=False)
    )
    db.commit()
    return updated


def delete(db: Session, notification_id: str, user_id: str):
    notification = _get_owned(db, notification_id, user_id)
    db.delete(notification)
    db.commit()
