from enum import Enum
from typing import Any

from pydantic import BaseModel


class NotificationType(str, Enum):
    APPLICATION_STATUS = "application_status"
    DEADLINE_REMINDER = "deadline_reminder"
    NEW_SCHOLARSHIP = "new_scholarship"
    SYSTEM = "system"
    DOCUMENT_UPLOAD = "document_upload"
    DOCUMENT_VERIFICATION = "document_verification"


class NotificationResponse(BaseModel):
    id: str
    type: str
    title: str
    message: str
    data: Any = None
    read: bool
    created_at: str


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    pagination: Pagination


class UnreadCountResponse(BaseModel):
    count: int
