"""ApplicationMessage model - Inbound and outbound emails of an application thread.

Messages are append-only: once a row is flushed it is never updated. An
inbound message with `application_id` NULL was received for a user but could
not be linked to one of their applications and waits for manual triage.
"""

from enum import Enum
from uuid import uuid4

from sqlalchemy import Column, Text, ForeignKey, CheckConstraint, Index, TIMESTAMP, Uuid, event, text
from sqlalchemy.orm import relationship, validates

from .base import Base, PortableJSONB, utcnow


class MessageDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class MatchConfidence(str, Enum):
    """How certain reply routing is about the linked application.

    HIGH: Thread header, token or exact sender evidence
    MEDIUM: Strong lead over the runner-up application
    LOW: Not linked, needs manual triage
    """
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ApplicationMessage(Base):
    """
    ApplicationMessage model - One email in an application thread.

    `match_signals` holds every routing signal computed for the message (not
    only the winning application's), so routing decisions can be audited or
    re-scored later. `payload` keeps a snapshot of the webhook request.

    Deduplication: an inbound message with the same Message-Id for the same
    user is stored once (partial unique index).
    """
    __tablename__ = "application_message"

    id = Column(Uuid, primary_key=True, default=uuid4)
    application_id = Column(
        Uuid,
        ForeignKey("application.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )
    user_id = Column(Uuid, ForeignKey("user.id", ondelete="CASCADE"), nullable=False)

    direction = Column(Text, nullable=False)
    subject = Column(Text, nullable=True)
    sender = Column(Text, nullable=True)
    recipient = Column(Text, nullable=True)
    reply_to = Column(Text, nullable=True)

    message_id = Column(Text, nullable=True)
    provider_message_id = Column(Text, nullable=True)

    text_body = Column(Text, nullable=True)
    html_body = Column(Text, nullable=True)
    headers = Column(PortableJSONB, nullable=True)

    match_confidence = Column(Text, nullable=True)
    match_signals = Column(PortableJSONB, nullable=True)
    payload = Column(PortableJSONB, nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("direction IN ('inbound', 'outbound')", name='ck_message_direction'),
        CheckConstraint(
            "match_confidence IS NULL OR match_confidence IN ('high', 'medium', 'low')",
            name='ck_message_match_confidence'
        ),
        Index(
            'idx_message_unique_inbound',
            'user_id', 'direction', 'message_id',
            unique=True,
            postgresql_where=text("message_id IS NOT NULL AND direction = 'inbound'"),
            sqlite_where=text("message_id IS NOT NULL AND direction = 'inbound'"),
        ),
        Index('idx_message_user_message_id', 'user_id', 'message_id'),
        Index('idx_message_user_provider_message_id', 'user_id', 'provider_message_id'),
    )

    application = relationship("Application", back_populates="messages")

    @validates('direction')
    def validate_direction(self, key, value):
        if isinstance(value, MessageDirection):
            return value.value
        try:
            return MessageDirection(value).value
        except ValueError:
            raise ValueError(f"Invalid direction: {value}. Must be inbound or outbound")

    @validates('match_confidence')
    def validate_match_confidence(self, key, value):
        if value is None:
            return None
        if isinstance(value, MatchConfidence):
            return value.value
        try:
            return MatchConfidence(value).value
        except ValueError:
            raise ValueError(f"Invalid match confidence: {value}")

    def __repr__(self):
        return (
            f"<ApplicationMessage(id={self.id}, application_id={self.application_id}, "
            f"direction={self.direction}, confidence={self.match_confidence})>"
        )


@event.listens_for(ApplicationMessage, "before_update")
def prevent_message_update(mapper, connection, target):
    """Reject UPDATEs on persisted messages."""
    raise ValueError(
        f"ApplicationMessage {target.id} is append-only and cannot be modified"
    )
