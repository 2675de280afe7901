"""
Document ingestion: the path from a staged upload to a stored, classified
and announced Document row.

Stages run strictly in order. Each side effect belongs to one failure tier:

* required  - validation, authorization, remote upload and persistence.
  A failure aborts the request and surfaces to the caller.
* downgrade - text extraction and classification. A failure is logged and
  the document is stored unverified.
* ignore    - local cleanup and the upload notification. A failure is
  logged and the request still succeeds.
"""
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from scholarhub.errors import AccessDenied, InternalError, NotFound, ScholarHubError, ValidationError
from scholarhub.models.application import Application
from scholarhub.models.document import Document
from scholarhub.schemas.auth import CurrentUser
from scholarhub.schemas.document import DocumentStatsResponse, DocumentType
from scholarhub.schemas.notification import NotificationType
from scholarhub.services.classifier import HEURISTICS, Classification, classify
from scholarhub.services.document_service import StagedUpload, check_upload
from scholarhub.services.notification_service import NotificationDispatcher
from scholarhub.services.ocr_service import TextExtractor
from scholarhub.services.storage_service import StorageBackend
from scholarhub.utils.payload import dump_payload

logger = logging.getLogger("scholarhub.ingestion")


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _scope(user: CurrentUser | str) -> tuple[str, bool]:
    if isinstance(user, str):
        return user, False
    return user.id, user.is_admin


class DocumentIngestionPipeline:
    def __init__(
        self,
        storage: StorageBackend,
        extractor: TextExtractor,
        notifier: NotificationDispatcher,
    ):
        self.storage = storage
        self.extractor = extractor
        self.notifier = notifier

    async def ingest(
        self,
        db: Session,
        application_id: str,
        document_type: DocumentType | str,
        upload: StagedUpload,
        user_id: str,
    ) -> Document:
        doc_type = self._validate(document_type, upload)
        application = self._authorize(db, application_id, user_id)

        stored = await run_in_threadpool(
            self.storage.upload, upload.path, upload.original_name, upload.mime_type
        )
        classification = await self._verify(upload, doc_type)

        document = self._persist(db, application, doc_type, upload, stored.key, stored.url, classification)
        self._cleanup(upload)
        await self._announce_upload(db, user_id, document)
        return document

    def _validate(self, document_type: DocumentType | str, upload: StagedUpload) -> DocumentType:
        try:
            doc_type = DocumentType(document_type)
        except ValueError:
            raise ValidationError(f"Invalid document type: {document_type}")
        check_upload(upload.mime_type, upload.size)
        return doc_type

    @staticmethod
    def _authorize(db: Session, application_id: str, user_id: str) -> Application:
        application = db.query(Application).filter(Application.id == application_id).first()
        if application is None or application.user_id != user_id:
            raise AccessDenied()
        return application

    async def _verify(self, upload: StagedUpload, doc_type: DocumentType) -> Classification:
        if doc_type not in HEURISTICS:
            return Classification.unverified()
        try:
            text = await run_in_threadpool(self.extractor.extract_text, upload.path, upload.mime_type)
            return classify(text, doc_type)
        except Exception:
            logger.exception("Verification failed for %s, storing as unverified", upload.original_name)
            return Classification.unverified()

    @staticmethod
    def _persist(
        db: Session,
        application: Application,
        doc_type: DocumentType,
        upload: StagedUpload,
        key: str,
        url: str,
        classification: Classification,
    ) -> Document:
        document = Document(
            id=str(uuid.uuid4()),
            application_id=application.id,
            filename=upload.path.name,
            original_name=upload.original_name,
            mime_type=upload.mime_type,
            size=upload.size,
            storage_key=key,
            url=url,
            document_type=doc_type.value,
            verified=classification.verified,
            extracted_fields=dump_payload(classification.extracted_fields),
            uploaded_at=_now(),
        )
        try:
            db.add(document)
            db.commit()
            db.refresh(document)
        except Exception as exc:
            db.rollback()
            raise InternalError("Failed to save document", detail=f"persist {key}: {exc}") from exc
        logger.info(
            "Stored %s document %s for application %s (verified=%s)",
            doc_type.value, document.id, application.id, document.verified,
        )
        return document

    @staticmethod
    def _cleanup(upload: StagedUpload):
        try:
            upload.path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove staged file %s: %s", upload.path, exc)

    async def _announce_upload(self, db: Session, user_id: str, document: Document):
        status = "verified" if document.verified else "pending review"
        try:
            await self.notifier.notify(
                db, user_id, NotificationType.DOCUMENT_UPLOAD,
                "Document Uploaded",
                f'Your document "{document.original_name}" was uploaded and is {status}.',
                {
                    "documentId": document.id,
                    "applicationId": document.application_id,
                    "verified": bool(document.verified),
                },
            )
        except Exception:
            logger.exception("Upload notification failed for document %s", document.id)

    def _get_owned(self, db: Session, document_id: str, user: CurrentUser | str) -> Document:
        user_id, is_admin = _scope(user)
        document = db.query(Document).filter(Document.id == document_id).first()
        if document is None:
            raise NotFound("Document not found")
        if not is_admin and document.application.user_id != user_id:
            raise AccessDenied()
        return document

    def get(self, db: Session, document_id: str, user: CurrentUser | str) -> Document:
        return self._get_owned(db, document_id, user)

    def list_for_application(self, db: Session, application_id: str, user: CurrentUser | str) -> list[Document]:
        user_id, is_admin = _scope(user)
        application = db.query(Application).filter(Application.id == application_id).first()
        if application is None or (not is_admin and application.user_id != user_id):
            raise AccessDenied()
        return (
            db.query(Document)
            .filter(Document.application_id == application_id)
            .order_by(Document.uploaded_at.desc())
            .all()
        )

    def delete(self, db: Session, document_id: str, user: CurrentUser | str):
        document = self._get_owned(db, document_id, user)
        key = document.storage_key
        db.delete(document)
        db.commit()
        logger.info("Deleted document %s; remote object %s is retained", document_id, key)

    async def manual_verify(
        self,
        db: Session,
        document_id: str,
        verified: bool,
        notes: str | None,
        admin: CurrentUser,
    ) -> Document:
        if not admin.is_admin:
            raise AccessDenied()
        document = db.query(Document).filter(Document.id == document_id).first()
        if document is None:
            raise NotFound("Document not found")

        document.verified = verified
        document.verification_notes = notes
        document.verified_at = _now()
        db.commit()
        db.refresh(document)
        logger.info("Document %s manually %s by %s", document.id, "approved" if verified else "rejected", admin.id)

        outcome = "approved" if verified else "rejected"
        message = f'Your document "{document.original_name}" has been {outcome}.'
        if notes:
            message += f" Notes: {notes}"
        await self.notifier.notify(
            db, document.application.user_id, NotificationType.DOCUMENT_VERIFICATION,
            "Document Verified", message,
            {
                "documentId": document.id,
                "applicationId": document.application_id,
                "verified": verified,
                "notes": notes,
            },
        )
        return document

    @staticmethod
    def stats(db: Session) -> DocumentStatsResponse:
        total, avg_size = db.query(func.count(Document.id), func.avg(Document.size)).one()
        verified = db.query(func.count(Document.id)).filter(Document.verified.is_(True)).scalar()
        return DocumentStatsResponse(
            total_documents=total,
            verified_documents=verified,
            pending_documents=total - verified,
            avg_file_size=float(avg_size) if avg_size is not None else None,
        )

    def access_url(self, document: Document) -> str:
        try:
            return self.storage.signed_url(document.storage_key)
        except ScholarHubError:
            logger.warning("Could not mint a link for %s, using the stored URL", document.storage_key)
            return document.url
