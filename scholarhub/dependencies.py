from functools import lru_cache

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from scholarhub.config import settings
from scholarhub.errors import AccessDenied, Unauthenticated
from scholarhub.schemas.auth import CurrentUser
from scholarhub.services.email_service import EmailSender, build_email_sender
from scholarhub.services.ingestion_service import DocumentIngestionPipeline
from scholarhub.services.notification_service import NotificationDispatcher
from scholarhub.services.ocr_service import TextExtractor
from scholarhub.services.storage_service import StorageBackend, build_storage_backend
from scholarhub.utils.security import decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> CurrentUser:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise Unauthenticated("Missing bearer token")
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise Unauthenticated("Invalid or expired token")
    return CurrentUser(id=payload["sub"], role=payload.get("role", "student"))


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise AccessDenied("Admin access required")
    return user


@lru_cache
def get_storage() -> StorageBackend:
    return build_storage_backend(settings)


@lru_cache
def get_text_extractor() -> TextExtractor:
    return TextExtractor(
        lang=settings.ocr_lang,
        timeout_seconds=settings.ocr_timeout_seconds,
        dpi=settings.pdf_dpi,
        tesseract_cmd=settings.tesseract_cmd,
    )


@lru_cache
def get_notifier() -> NotificationDispatcher:
    return NotificationDispatcher()


@lru_cache
def get_email_sender() -> EmailSender:
    return build_email_sender(settings)


def get_pipeline(
    storage: StorageBackend = Depends(get_storage),
    extractor: TextExtractor = Depends(get_text_extractor),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> DocumentIngestionPipeline:
    return DocumentIngestionPipeline(storage, extractor, notifier)
