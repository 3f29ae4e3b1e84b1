"""Pytest fixtures for the reply relay.

Provides reusable test fixtures for:
- In-memory SQLite database session (tables created per test)
- Fake mail sender and attachment storage (port implementations)
- Test client with database, mail and storage dependencies overridden
- Signed Mailgun webhook form builder

Usage:
    def test_webhook(client, signed_form):
        response = client.post(INBOUND_URL, data=signed_form(recipient="x@relay.test"))
        assert response.status_code == 200
"""

import os
import sys
from pathlib import Path
from datetime import datetime, timedelta, timezone
from typing import Generator, Optional, Sequence
from uuid import UUID, uuid4

# Set environment variables BEFORE any imports to ensure they take effect
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("MAILGUN_WEBHOOK_SIGNING_KEY", "test-signing-key")
os.environ.setdefault("MAILGUN_API_KEY", "test-api-key")
os.environ.setdefault("MAILGUN_DOMAIN", "relay.test")

backend_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(backend_src))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config import RelayConfig
from database import get_db as database_get_db
from dependencies import get_attachment_storage, get_mail_sender, get_relay_config
from domain.attachments.ports import AttachmentStoragePort, StorageError, StoredAttachment
from domain.inbound_email.signature import compute_signature
from domain.mail.models import EmailAttachment, SentEmail
from domain.mail.ports import MailSenderPort
from models import Application, ApplicationStatus, Base, Job, Profile, User, UserEmailAlias

TEST_SIGNING_KEY = "test-signing-key"
TEST_DOMAIN = "relay.test"
INBOUND_URL = "/api/v1/webhooks/mailgun/inbound"

test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


class FakeMailSender(MailSenderPort):
    """Records sent emails instead of calling Mailgun."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict] = []

    def send(
        self,
        from_address: str,
        to: str,
        subject: str,
        text: str,
        html: Optional[str] = None,
        reply_to: Optional[str] = None,
        in_reply_to: Optional[str] = None,
        attachments: Sequence[EmailAttachment] = (),
    ) -> SentEmail:
        if self.fail:
            raise RuntimeError("mail provider unavailable")
        self.sent.append({
            "from_address": from_address,
            "to": to,
            "subject": subject,
            "text": text,
            "html": html,
            "reply_to": reply_to,
            "in_reply_to": in_reply_to,
            "attachments": list(attachments),
        })
        return SentEmail(provider_message_id=f"<fake-{len(self.sent)}@relay.test>", message="Queued")


class FakeAttachmentStorage(AttachmentStoragePort):
    """In-memory attachment storage."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.objects: dict[str, bytes] = {}

    def upload(self, storage_key: str, content: bytes, mime_type: str) -> StoredAttachment:
        if self.fail:
            raise StorageError("bucket unavailable")
        self.objects[storage_key] = content
        return StoredAttachment(
            storage_key=storage_key,
            sha256="",
            size_bytes=len(content),
            mime_type=mime_type,
        )

    def download(self, storage_key: str) -> bytes:
        if storage_key not in self.objects:
            raise FileNotFoundError(storage_key)
        return self.objects[storage_key]

    def delete(self, storage_key: str) -> None:
        if self.fail:
            raise StorageError("bucket unavailable")
        self.objects.pop(storage_key, None)

    def file_exists(self, storage_key: str) -> bool:
        return storage_key in self.objects

    def check_health(self) -> None:
        if self.fail:
            raise StorageError("bucket unavailable")


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh database session for each test.

    Creates all tables before the test and drops them after.
    """
    Base.metadata.create_all(bind=test_engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def relay_config() -> RelayConfig:
    return RelayConfig(
        signing_key=TEST_SIGNING_KEY,
        api_key="test-api-key",
        domain=TEST_DOMAIN,
        from_email="bewerbungen@relay.test",
        from_name="Klaro Bewerbungen",
    )


@pytest.fixture
def mail_sender() -> FakeMailSender:
    return FakeMailSender()


@pytest.fixture
def attachment_storage() -> FakeAttachmentStorage:
    return FakeAttachmentStorage()


@pytest.fixture(scope="function")
def client(db_session, relay_config, mail_sender, attachment_storage):
    """Test client wired to the test database and fake collaborators."""
    from main import app

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[database_get_db] = override_get_db
    app.dependency_overrides[get_relay_config] = lambda: relay_config
    app.dependency_overrides[get_mail_sender] = lambda: mail_sender
    app.dependency_overrides[get_attachment_storage] = lambda: attachment_storage

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def signed_form():
    """Build a Mailgun inbound form with a valid signature."""

    def _build(
        recipient: str,
        sender: str = "personal@klinikum-x.de",
        subject: str = "Re: Bewerbung Assistenzarzt",
        body_plain: str = "Vielen Dank für Ihre Bewerbung.",
        timestamp: str = "1760860800",
        token: str = "a" * 50,
        **extra: str,
    ) -> dict[str, str]:
        form = {
            "timestamp": timestamp,
            "token": token,
            "signature": compute_signature(TEST_SIGNING_KEY, timestamp, token),
            "recipient": recipient,
            "sender": sender,
            "subject": subject,
            "body-plain": body_plain,
        }
        form.update(extra)
        return form

    return _build


# =============================================================================
# DATA FACTORIES
# =============================================================================

BASE_TIME = datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc)


def make_user(
    db: Session,
    email: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    profile_email: Optional[str] = None,
    alias_email: Optional[str] = None,
    aliases: Sequence[str] = (),
) -> User:
    """Create a user with profile and optional alias registry rows."""
    user = User(email=email)
    db.add(user)
    db.flush()

    db.add(Profile(
        user_id=user.id,
        first_name=first_name,
        last_name=last_name,
        email=profile_email,
        alias_email=alias_email,
    ))
    for address in aliases:
        db.add(UserEmailAlias(user_id=user.id, full_address=address, is_active=True))

    db.commit()
    db.refresh(user)
    return user


def make_application(
    db: Session,
    user: User,
    recipient_email: str,
    status: ApplicationStatus = ApplicationStatus.SENT,
    reply_token: Optional[str] = None,
    reply_to: Optional[str] = None,
    subject: Optional[str] = None,
    job_title: Optional[str] = None,
    hospital_name: Optional[str] = None,
    minutes_ago: int = 60,
    application_id: Optional[UUID] = None,
) -> Application:
    """Create an application; `minutes_ago` controls recency ordering."""
    job = None
    if job_title or hospital_name:
        job = Job(title=job_title, hospital_name=hospital_name)
        db.add(job)
        db.flush()

    timestamp = BASE_TIME - timedelta(minutes=minutes_ago)
    application = Application(
        id=application_id or uuid4(),
        user_id=user.id,
        job_id=job.id if job else None,
        recipient_email=recipient_email,
        reply_token=reply_token,
        reply_to=reply_to,
        subject=subject,
        status=status,
        created_at=timestamp,
        updated_at=timestamp,
    )
    db.add(application)
    db.commit()
    db.refresh(application)
    return application


@pytest.fixture
def max_mueller(db_session) -> User:
    """Applicant with the bare alias max.mueller@relay.test."""
    return make_user(
        db_session,
        email="max@example.org",
        first_name="Max",
        last_name="Müller",
        profile_email="max.privat@example.org",
        aliases=[f"max.mueller@{TEST_DOMAIN}"],
    )


@pytest.fixture
def erika_schmidt(db_session) -> User:
    """Second applicant, used for isolation tests."""
    return make_user(
        db_session,
        email="erika@example.org",
        first_name="Erika",
        last_name="Schmidt",
        profile_email="erika.privat@example.org",
        aliases=[f"erika.schmidt@{TEST_DOMAIN}"],
    )
