import uuid
from datetime import datetime, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from scholarhub.config import settings
from scholarhub.database import get_db, init_db
from scholarhub.dependencies import get_email_sender, get_notifier, get_storage, get_text_extractor
from scholarhub.errors import UpstreamFailure
from scholarhub.main import app
from scholarhub.models import Application, SavedScholarship, Scholarship, User
from scholarhub.services.notification_service import NotificationDispatcher
from scholarhub.services.realtime_service import ConnectionManager
from scholarhub.services.storage_service import StorageBackend
from scholarhub.utils.security import create_access_token


def _set_sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _now():
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class FakeStorage(StorageBackend):
    """Keeps uploaded bytes in memory and hands out predictable links."""

    name = "fake"

    def __init__(self):
        super().__init__(ttl_seconds=60)
        self.objects: dict[str, bytes] = {}
        self.fail = False

    def _put(self, path: Path, key: str, mime_type: str) -> None:
        if self.fail:
            raise UpstreamFailure("Failed to upload document", detail="fake storage down")
        self.objects[key] = path.read_bytes()

    def signed_url(self, key: str) -> str:
        return f"https://storage.test/{key}?sig=fresh"


class FakeExtractor:
    def __init__(self):
        self.text = ""
        self.fail = False
        self.calls: list[Path] = []
        self.mime_types: list[str | None] = []

    def extract_text(self, file_path, mime_type=None) -> str:
        self.calls.append(Path(file_path))
        self.mime_types.append(mime_type)
        if self.fail:
            raise UpstreamFailure("Failed to read document", detail="fake OCR crash")
        return self.text


class FakeEmailSender:
    def __init__(self):
        self.sent: list[dict] = []
        self.fail_for: set[str] = set()

    def send_deadline_reminder_email(self, to, student_name, scholarship_name, days_left):
        if to in self.fail_for:
            raise UpstreamFailure("Failed to send email", detail=f"fake bounce {to}")
        self.sent.append({
            "to": to,
            "student_name": student_name,
            "scholarship_name": scholarship_name,
            "days_left": days_left,
        })
        return True


class Seeder:
    def __init__(self, session_factory):
        self.session_factory = session_factory

    def _add(self, obj):
        db = self.session_factory()
        try:
            db.add(obj)
            db.commit()
            return obj.id if hasattr(obj, "id") else None
        finally:
            db.close()

    def user(self, role="student", email=None, first_name="Test", last_name="Student"):
        return self._add(User(
            id=str(uuid.uuid4()),
            email=email or f"{uuid.uuid4().hex[:8]}@example.com",
            first_name=first_name,
            last_name=last_name,
            role=role,
            created_at=_now(),
        ))

    def scholarship(self, name="Merit Award", category="merit", deadline=None, is_active=True, created_at=None):
        return self._add(Scholarship(
            id=str(uuid.uuid4()),
            name=name,
            category=category,
            deadline=deadline,
            is_active=is_active,
            created_at=created_at or _now(),
        ))

    def application(self, user_id, scholarship_id=None):
        scholarship_id = scholarship_id or self.scholarship()
        return self._add(Application(
            id=str(uuid.uuid4()),
            user_id=user_id,
            scholarship_id=scholarship_id,
            status="pending",
            submitted_at=_now(),
        ))

    def save(self, user_id, scholarship_id):
        self._add(SavedScholarship(user_id=user_id, scholarship_id=scholarship_id, saved_at=_now()))


@pytest.fixture
def tmp_data(tmp_path):
    data_path = tmp_path / "ScholarHub"
    data_path.mkdir()
    original = settings.data_path
    settings.data_path = data_path
    yield data_path
    settings.data_path = original


@pytest.fixture
def test_db(tmp_data):
    db_path = tmp_data / "db.sqlite"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _set_sqlite_pragmas)
    TestSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    init_db(db_path)

    def override_get_db():
        db = TestSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestSession
    app.dependency_overrides.clear()
    engine.dispose()


@pytest.fixture
def db(test_db):
    session = test_db()
    yield session
    session.close()


@pytest.fixture
def seed(test_db):
    return Seeder(test_db)


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def extractor():
    return FakeExtractor()


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
def realtime():
    return ConnectionManager()


@pytest.fixture
def notifier(realtime):
    return NotificationDispatcher(realtime)


@pytest.fixture
def client(test_db, storage, extractor, email_sender, notifier):
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_text_extractor] = lambda: extractor
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_email_sender] = lambda: email_sender
    return TestClient(app, raise_server_exceptions=False)


def auth_headers(user_id, role="student"):
    return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}


@pytest.fixture
def auth():
    return auth_headers
