import math

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from scholarhub.database import get_db
from scholarhub.dependencies import get_current_user, get_notifier, require_admin
from scholarhub.schemas.auth import CurrentUser
from scholarhub.schemas.notification import (
    NotificationListResponse,
    NotificationResponse,
    NotificationType,
    Pagination,
    UnreadCountResponse,
)
from scholarhub.services import notification_service
from scholarhub.services.notification_service import NotificationDispatcher, notification_to_response

router = APIRouter(
    prefix="/notifications",
    tags=["notifications"],
)


class SystemNotificationRequest(BaseModel):
    user_ids: list[str]
    title: str
    message: str
    data: dict | None = None


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = False,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items, total = notification_service.list_for_user(db, user.id, page, limit, unread_only)
    return NotificationListResponse(
        notifications=[notification_to_response(n) for n in items],
        pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return UnreadCountResponse(count=notification_service.unread_count(db, user.id))


@router.patch("/read-all")
async def mark_all_read(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    updated = notification_service.mark_all_read(db, user.id)
    return {"message": "All notifications marked as read", "updated": updated}


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return notification_to_response(notification_service.mark_read(db, notification_id, user.id))


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notification_service.delete(db, notification_id, user.id)
    return {"message": "Notification deleted successfully"}


@router.post("/system", status_code=201)
async def send_system_notification(
    req: SystemNotificationRequest,
    _: CurrentUser = Depends(require_admin),
    notifier: NotificationDispatcher = Depends(get_notifier),
    db: Session = Depends(get_db),
):
    """Fan a system announcement out to the listed users."""
    created = await notifier.send_bulk(db, req.user_ids, NotificationType.SYSTEM, req.title, req.message, req.data)
    return {"created": created}
