import asyncio

import pytest

from scholarhub.errors import AccessDenied, NotFound, UpstreamFailure, ValidationError
from scholarhub.models import Document, Notification
from scholarhub.schemas.auth import CurrentUser
from scholarhub.services.document_service import StagedUpload
from scholarhub.services.ingestion_service import DocumentIngestionPipeline


class TestIngestionPipeline:
    def _pipeline(self, storage, extractor, notifier):
        return DocumentIngestionPipeline(storage, extractor, notifier)

    def _staged(self, tmp_path, name="memo.pdf", content=b"%PDF-1.4 fake", mime="application/pdf"):
        path = tmp_path / f"document-1-1{name[name.rfind('.'):]}"
        path.write_bytes(content)
        return StagedUpload(path=path, original_name=name, mime_type=mime, size=len(content))

    def test_verified_transcript(self, db, seed, tmp_path, storage, extractor, notifier):
        user_id = seed.user()
        app_id = seed.application(user_id)
        extractor.text = "GPA: 3.6\nCS101 Programming"
        staged = self._staged(tmp_path)

        doc = asyncio.run(self._pipeline(storage, extractor, notifier).ingest(
            db, app_id, "previous_year_memo", staged, user_id,
        ))

        assert doc.verified is True
        assert doc.fields == {"gpa": 3.6, "coursesCount": 1}
        assert doc.storage_key in storage.objects
        assert doc.url.startswith("https://storage.test/documents/")
        assert not staged.path.exists()

        note = db.query(Notification).filter(Notification.user_id == user_id).one()
        assert note.type == "document_upload"
        assert note.payload == {"documentId": doc.id, "applicationId": app_id, "verified": True}

    def test_foreign_application_denied(self, db, seed, tmp_path, storage, extractor, notifier):
        owner = seed.user()
        intruder = seed.user()
        app_id = seed.application(owner)
        staged = self._staged(tmp_path)

        with pytest.raises(AccessDenied):
            asyncio.run(self._pipeline(storage, extractor, notifier).ingest(
                db, app_id, "previous_year_memo", staged, intruder,
            ))
        assert storage.objects == {}
        assert db.query(Document).count() == 0

    def test_missing_application_denied(self, db, seed, tmp_path, storage, extractor, notifier):
        user_id = seed.user()
        with pytest.raises(AccessDenied):
            asyncio.run(self._pipeline(storage, extractor, notifier).ingest(
                db, "no-such-application", "other", self._staged(tmp_path), user_id,
            ))

    def test_invalid_type_rejected(self, db, seed, tmp_path, storage, extractor, notifier):
        user_id = seed.user()
        app_id = seed.application(user_id)
        with pytest.raises(ValidationError):
            asyncio.run(self._pipeline(storage, extractor, notifier).ingest(
                db, app_id, "selfie", self._staged(tmp_path), user_id,
            ))
        assert storage.objects == {}

    def test_disallowed_mime_rejected(self, db, seed, tmp_path, storage, extractor, notifier):
        user_id = seed.user()
        app_id = seed.application(user_id)
        staged = self._staged(tmp_path, name="notes.txt", content=b"hello", mime="text/plain")
        with pytest.raises(ValidationError):
            asyncio.run(self._pipeline(storage, extractor, notifier).ingest(
                db, app_id, "other", staged, user_id,
            ))

    def test_upload_failure_aborts(self, db, seed, tmp_path, storage, extractor, notifier):
        user_id = seed.user()
        app_id = seed.application(user_id)
        storage.fail = True
        staged = self._staged(tmp_path)

        with pytest.raises(UpstreamFailure):
            asyncio.run(self._pipeline(storage, extractor, notifier).ingest(
                db, app_id, "previous_year_memo", staged, user_id,
            ))
        assert db.query(Document).count() == 0
        assert db.query(Notification).count() == 0
        assert staged.path.exists()

    def test_retry_after_upload_failure_stores_once(self, db, seed, tmp_path, storage, extractor, notifier):
        user_id = seed.user()
        app_id = seed.application(user_id)
        pipeline = self._pipeline(storage, extractor, notifier)
        staged = self._staged(tmp_path)

        storage.fail = True
        with pytest.raises(UpstreamFailure):
            asyncio.run(pipeline.ingest(db, app_id, "previous_year_memo", staged, user_id))

        storage.fail = False
        asyncio.run(pipeline.ingest(db, app_id, "previous_year_memo", staged, user_id))

        assert db.query(Document).count() == 1
        notes = db.query(Notification).filter(Notification.type == "document_upload").all()
        assert len(notes) == 1
        assert not staged.path.exists()

    def test_extractor_gets_declared_mime_type(self, db, seed, tmp_path, storage, extractor, notifier):
        user_id = seed.user()
        app_id = seed.application(user_id)
        path = tmp_path / "document-1-1"
        path.write_bytes(b"%PDF-1.4 fake")
        staged = StagedUpload(path=path, original_name="memo", mime_type="application/pdf", size=13)

        asyncio.run(self._pipeline(storage, extractor, notifier).ingest(
            db, app_id, "identity_card", staged, user_id,
        ))
        assert extractor.calls == [path]
        assert extractor.mime_types == ["application/pdf"]

    def test_extraction_failure_downgrades(self, db, seed, tmp_path, storage, extractor, notifier):
        user_id = seed.user()
        app_id = seed.application(user_id)
        extractor.fail = True

        doc = asyncio.run(self._pipeline(storage, extractor, notifier).ingest(
            db, app_id, "identity_card", self._staged(tmp_path), user_id,
        ))
        assert doc.verified is False
        assert doc.fields is None
        assert db.query(Document).count() == 1

    def test_types_without_heuristic_skip_extraction(self, db, seed, tmp_path, storage, extractor, notifier):
        user_id = seed.user()
        app_id = seed.application(user_id)

        doc = asyncio.run(self._pipeline(storage, extractor, notifier).ingest(
            db, app_id, "health_certificate", self._staged(tmp_path), user_id,
        ))
        assert doc.verified is False
        assert extractor.calls == []

    def test_notification_failure_ignored(self, db, seed, tmp_path, storage, extractor, notifier, monkeypatch):
        user_id = seed.user()
        app_id = seed.application(user_id)

        async def broken_notify(*args, **kwargs):
            raise RuntimeError("notification store unavailable")

        monkeypatch.setattr(notifier, "notify", broken_notify)
        doc = asyncio.run(self._pipeline(storage, extractor, notifier).ingest(
            db, app_id, "other", self._staged(tmp_path), user_id,
        ))
        assert db.query(Document).filter(Document.id == doc.id).count() == 1

    def test_unverified_recommendation_keeps_fields(self, db, seed, tmp_path, storage, extractor, notifier):
        user_id = seed.user()
        app_id = seed.application(user_id)
        extractor.text = "I recommend this student. " * 10

        doc = asyncio.run(self._pipeline(storage, extractor, notifier).ingest(
            db, app_id, "recommendation_letter", self._staged(tmp_path), user_id,
        ))
        assert doc.verified is False
        assert doc.fields == {"wordCount": 40, "hasKeywords": True}


class TestDocumentAccess:
    def _pipeline(self, storage, extractor, notifier):
        return DocumentIngestionPipeline(storage, extractor, notifier)

    def _ingest(self, db, pipeline, tmp_path, app_id, user_id, doc_type="other"):
        path = tmp_path / "document-1-2.pdf"
        path.write_bytes(b"%PDF fake")
        staged = StagedUpload(path=path, original_name="file.pdf", mime_type="application/pdf", size=9)
        return asyncio.run(pipeline.ingest(db, app_id, doc_type, staged, user_id))

    def test_get_and_delete_ownership(self, db, seed, tmp_path, storage, extractor, notifier):
        pipeline = self._pipeline(storage, extractor, notifier)
        owner = seed.user()
        other = seed.user()
        doc = self._ingest(db, pipeline, tmp_path, seed.application(owner), owner)
        doc_id, key = doc.id, doc.storage_key

        assert pipeline.get(db, doc_id, owner).id == doc_id
        with pytest.raises(AccessDenied):
            pipeline.get(db, doc_id, other)
        with pytest.raises(AccessDenied):
            pipeline.delete(db, doc_id, other)

        pipeline.delete(db, doc_id, owner)
        with pytest.raises(NotFound):
            pipeline.get(db, doc_id, owner)
        # Remote objects are kept after a delete.
        assert key in storage.objects

    def test_admin_can_read_any_document(self, db, seed, tmp_path, storage, extractor, notifier):
        pipeline = self._pipeline(storage, extractor, notifier)
        owner = seed.user()
        admin = CurrentUser(id=seed.user(role="admin"), role="admin")
        doc = self._ingest(db, pipeline, tmp_path, seed.application(owner), owner)
        assert pipeline.get(db, doc.id, admin).id == doc.id

    def test_manual_verify_notifies_owner(self, db, seed, tmp_path, storage, extractor, notifier):
        pipeline = self._pipeline(storage, extractor, notifier)
        owner = seed.user()
        app_id = seed.application(owner)
        doc = self._ingest(db, pipeline, tmp_path, app_id, owner)
        admin = CurrentUser(id=seed.user(role="admin"), role="admin")

        updated = asyncio.run(pipeline.manual_verify(db, doc.id, True, "Looks good", admin))
        assert updated.verified is True
        assert updated.verification_notes == "Looks good"
        assert updated.verified_at is not None

        note = (
            db.query(Notification)
            .filter(Notification.user_id == owner, Notification.type == "document_verification")
            .one()
        )
        assert "approved" in note.message
        assert note.payload == {
            "documentId": doc.id,
            "applicationId": app_id,
            "verified": True,
            "notes": "Looks good",
        }

    def test_manual_verify_requires_admin(self, db, seed, tmp_path, storage, extractor, notifier):
        pipeline = self._pipeline(storage, extractor, notifier)
        owner = seed.user()
        doc = self._ingest(db, pipeline, tmp_path, seed.application(owner), owner)
        with pytest.raises(AccessDenied):
            asyncio.run(pipeline.manual_verify(db, doc.id, True, None, CurrentUser(id=owner)))

    def test_manual_verify_missing_document(self, db, seed, storage, extractor, notifier):
        admin = CurrentUser(id=seed.user(role="admin"), role="admin")
        with pytest.raises(NotFound):
            asyncio.run(self._pipeline(storage, extractor, notifier).manual_verify(db, "missing", False, None, admin))

    def test_stats(self, db, seed, tmp_path, storage, extractor, notifier):
        pipeline = self._pipeline(storage, extractor, notifier)
        owner = seed.user()
        app_id = seed.application(owner)
        extractor.text = "GPA: 3.9"
        self._ingest(db, pipeline, tmp_path, app_id, owner, doc_type="previous_year_memo")
        self._ingest(db, pipeline, tmp_path, app_id, owner)

        stats = pipeline.stats(db)
        assert stats.total_documents == 2
        assert stats.verified_documents == 1
        assert stats.pending_documents == 1
        assert stats.avg_file_size == 9.0

    def test_stats_empty(self, db, storage, extractor, notifier):
        stats = self._pipeline(storage, extractor, notifier).stats(db)
        assert stats.total_documents == 0
        assert stats.avg_file_size is None
