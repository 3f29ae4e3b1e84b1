"""Message Persister & Status Updater

The only place the inbound flow writes to the database. One routing
decision produces at most one inbound message row; linking it flips the
application's status to `replied` in the same transaction.
"""

import logging
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from models.application import Application, ApplicationStatus
from models.application_message import ApplicationMessage, MessageDirection
from .errors import PersistenceError
from .models import InboundEmail, RoutingResult

logger = logging.getLogger(__name__)


class MessagePersister:
    """Writes inbound messages and updates application status."""

    def __init__(self, db: Session):
        self.db = db

    def find_duplicate(self, user_id: UUID, message_id: Optional[str]) -> Optional[ApplicationMessage]:
        """Inbound message already stored for this user with the same Message-Id."""
        if not message_id:
            return None
        return self.db.execute(
            select(ApplicationMessage).where(
                ApplicationMessage.user_id == user_id,
                ApplicationMessage.direction == MessageDirection.INBOUND.value,
                ApplicationMessage.message_id == message_id,
            ).limit(1)
        ).scalars().first()

    def persist(
        self,
        user_id: UUID,
        recipient: str,
        email: InboundEmail,
        routing: RoutingResult,
        payload: dict[str, Any],
        message_uuid: Optional[UUID] = None,
    ) -> Optional[ApplicationMessage]:
        """Insert the inbound message and mark the linked application replied.

        Args:
            user_id: Owner of the message
            recipient: Normalized recipient address
            email: Webhook delivery
            routing: Routing decision (application may be None)
            payload: Request snapshot stored for audit
            message_uuid: Primary key to use (pre-allocated for attachment keys)

        Returns:
            ApplicationMessage, or None if a concurrent delivery stored the
            same Message-Id first

        Raises:
            PersistenceError: If the transaction fails
        """
        message = ApplicationMessage(
            id=message_uuid or uuid4(),
            application_id=routing.application_id,
            user_id=user_id,
            direction=MessageDirection.INBOUND,
            subject=email.subject,
            sender=email.sender,
            recipient=recipient,
            message_id=email.message_id or None,
            text_body=email.text_body,
            html_body=email.html_body,
            headers=email.thread_headers,
            match_confidence=routing.confidence,
            match_signals=routing.signals_as_dicts(),
            payload=payload,
        )

        try:
            self.db.add(message)
            self.db.flush()

            if routing.application_id is not None:
                application = self.db.get(Application, routing.application_id)
                if application is not None and application.user_id == user_id:
                    application.status = ApplicationStatus.REPLIED

            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            if self.find_duplicate(user_id, email.message_id) is not None:
                logger.info(
                    f"Duplicate delivery of {email.message_id} stored concurrently, skipping",
                    extra={"user_id": user_id},
                )
                return None
            logger.error("Failed to insert inbound message", exc_info=True)
            raise PersistenceError()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error("Failed to insert inbound message", exc_info=True)
            raise PersistenceError()

        logger.info(
            f"Stored inbound message {message.id}",
            extra={
                "user_id": user_id,
                "application_id": routing.application_id,
                "confidence": routing.confidence.value if routing.confidence else None,
            },
        )
        return message
