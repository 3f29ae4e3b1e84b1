"""Application model - A job application sent by email on behalf of a user.

Each application belongs to exactly one user. The relay reads the fields
below to route hospital replies and flips `status` to `replied` once a reply
is linked.
"""

from enum import Enum
from uuid import uuid4

from sqlalchemy import Column, Text, ForeignKey, CheckConstraint, Index, TIMESTAMP, Uuid
from sqlalchemy.orm import relationship, validates

from .base import Base, utcnow


class ApplicationStatus(str, Enum):
    """Delivery status of an application email.

    QUEUED: Outbound email handed to the mail provider
    SENT: Provider accepted the email
    REPLIED: At least one inbound reply is linked to the application
    FAILED: Outbound delivery failed
    """
    QUEUED = "queued"
    SENT = "sent"
    REPLIED = "replied"
    FAILED = "failed"


# Statuses considered "in flight" when routing a reply by bare alias
ROUTABLE_STATUSES = (
    ApplicationStatus.SENT.value,
    ApplicationStatus.QUEUED.value,
    ApplicationStatus.REPLIED.value,
)


class Application(Base):
    """
    Application model - Outbound job application and its reply address.

    `reply_to` is the relay address the hospital answers to. Depending on
    when the application was sent it follows the legacy, friendly, short or
    bare-alias format. `reply_token` is the per-application secret embedded
    in the legacy/friendly/short formats.
    """
    __tablename__ = "application"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    job_id = Column(Uuid, ForeignKey("job.id", ondelete="SET NULL"), nullable=True)

    recipient_email = Column(Text, nullable=True)
    reply_token = Column(Text, nullable=True)
    reply_to = Column(Text, nullable=True)
    subject = Column(Text, nullable=True)

    status = Column(Text, nullable=False, default=ApplicationStatus.QUEUED.value)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint(
            "status IN ('queued', 'sent', 'replied', 'failed')",
            name='ck_application_status'
        ),
        Index('idx_application_user_status_updated', 'user_id', 'status', 'updated_at'),
        Index('idx_application_reply_token', 'reply_token'),
    )

    job = relationship("Job")
    messages = relationship("ApplicationMessage", back_populates="application")

    @validates('status')
    def validate_status(self, key, value):
        """Ensure status is a known ApplicationStatus value."""
        if isinstance(value, ApplicationStatus):
            return value.value
        try:
            return ApplicationStatus(value).value
        except ValueError:
            raise ValueError(
                f"Invalid status: {value}. Must be one of "
                f"{[s.value for s in ApplicationStatus]}"
            )

    @validates('recipient_email', 'reply_to')
    def normalize_address(self, key, value):
        if value is None:
            return None
        return value.strip().lower() or None

    def __repr__(self):
        return (
            f"<Application(id={self.id}, user_id={self.user_id}, "
            f"status={self.status}, recipient={self.recipient_email})>"
        )
