"""Inbound webhook service.

Orchestrates one Mailgun delivery in two phases:

1. Compute and persist: verify the signature, decode the recipient, route
   the reply (direct or smart) and store the message. Any error here fails
   the request before the message is written, and attachments archived for
   it are removed again.
2. Notify: forward the stored reply to the user. Failures are logged only.
"""

import logging
import time
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from config import RelayConfig
from domain.attachments.paths import inbound_attachment_key
from domain.attachments.ports import AttachmentStoragePort, StorageError
from domain.inbound_email.alias_directory import AliasDirectory
from domain.inbound_email.direct_router import DirectRouter
from domain.inbound_email.errors import (
    InboundEmailError,
    RecipientUnrecognizedError,
    SignatureInvalidError,
)
from domain.inbound_email.forwarder import Forwarder
from domain.inbound_email.models import (
    InboundEmail,
    InboundResult,
    RoutingResult,
    RoutingSignal,
    SignalType,
)
from domain.inbound_email.persister import MessagePersister
from domain.inbound_email.recipient_parser import (
    ParsedRecipient,
    extract_email_address,
    parse_recipient,
)
from domain.inbound_email.scoring import HEADER_MATCH_WEIGHT
from domain.inbound_email.signature import verify_mailgun_signature
from domain.inbound_email.smart_router import SmartRouter
from domain.mail.ports import MailSenderPort
from models.application_message import ApplicationMessage, MatchConfidence
from observability.metrics import (
    attachment_archive_failures_total,
    forwarding_failures_total,
    inbound_duplicates_total,
    inbound_messages_total,
    inbound_rejections_total,
    webhook_duration_seconds,
)

logger = logging.getLogger(__name__)

TOKEN_MATCH_WEIGHT = HEADER_MATCH_WEIGHT


class InboundEmailService:
    """Handles authenticated Mailgun inbound deliveries.

    Example:
        service = InboundEmailService(db, RelayConfig.from_settings(settings), mailgun)
        result = service.handle(email)
    """

    def __init__(
        self,
        db: Session,
        config: RelayConfig,
        mail_sender: MailSenderPort,
        storage: Optional[AttachmentStoragePort] = None,
    ):
        self.db = db
        self.config = config
        self.storage = storage
        self.direct_router = DirectRouter(db)
        self.alias_directory = AliasDirectory(db)
        self.persister = MessagePersister(db)
        self.forwarder = Forwarder(db, mail_sender, config.from_address)

    def handle(self, email: InboundEmail) -> InboundResult:
        """Process one webhook delivery.

        Raises:
            InboundEmailError: Subclass carrying the HTTP status to answer with
        """
        start = time.time()
        try:
            result = self._process(email)
        except InboundEmailError as e:
            inbound_rejections_total.labels(reason=e.reason).inc()
            webhook_duration_seconds.labels(outcome="rejected").observe(time.time() - start)
            raise
        except Exception:
            webhook_duration_seconds.labels(outcome="error").observe(time.time() - start)
            raise

        outcome = "duplicate" if result.duplicate else "stored"
        webhook_duration_seconds.labels(outcome=outcome).observe(time.time() - start)
        return result

    def _process(self, email: InboundEmail) -> InboundResult:
        if not verify_mailgun_signature(
            self.config.signing_key, email.timestamp, email.token, email.signature
        ):
            logger.warning("Invalid Mailgun signature")
            raise SignatureInvalidError()

        recipient = extract_email_address(email.recipient)
        if not recipient:
            logger.warning(f"Inbound recipient missing or invalid: {email.recipient!r}")
            raise RecipientUnrecognizedError()

        parsed = parse_recipient(recipient)
        if parsed.is_explicit_reference:
            route = "direct"
            user_id, routing = self._route_direct(parsed)
        elif parsed.is_bare_alias:
            route = "smart"
            user_id = self.alias_directory.resolve_user_id(recipient)
            routing = None
        else:
            logger.warning(f"Recipient matches no address format: {recipient}")
            raise RecipientUnrecognizedError()

        duplicate = self.persister.find_duplicate(user_id, email.message_id)
        if duplicate is not None:
            return self._duplicate_result(user_id, duplicate)

        if routing is None:
            sender = extract_email_address(email.sender) or email.sender
            routing = SmartRouter(self.db, user_id).route(
                sender_email=sender,
                subject=email.subject,
                in_reply_to=email.in_reply_to,
                references=email.references,
            )

        message_uuid = uuid4()
        attachment_keys = self._archive_attachments(user_id, message_uuid, email)
        payload = self._build_payload(email, recipient, attachment_keys)

        try:
            message = self.persister.persist(
                user_id=user_id,
                recipient=recipient,
                email=email,
                routing=routing,
                payload=payload,
                message_uuid=message_uuid,
            )
        except Exception:
            self._discard_attachments(attachment_keys)
            raise
        if message is None:
            self._discard_attachments(attachment_keys)
            inbound_duplicates_total.inc()
            return InboundResult(
                message_id=None,
                user_id=user_id,
                application_id=routing.application_id,
                confidence=routing.confidence,
                duplicate=True,
            )

        inbound_messages_total.labels(
            route=route,
            confidence=routing.confidence.value if routing.confidence else "none",
        ).inc()

        forwarded = self.forwarder.forward(user_id, email, routing)
        if not forwarded:
            forwarding_failures_total.inc()

        return InboundResult(
            message_id=message.id,
            user_id=user_id,
            application_id=routing.application_id,
            confidence=routing.confidence,
            forwarded=forwarded,
        )

    def _route_direct(self, parsed: ParsedRecipient) -> tuple[UUID, RoutingResult]:
        application = self.direct_router.resolve(parsed)
        logger.info(
            f"Direct route via {parsed.kind.value} address",
            extra={"user_id": application.user_id, "application_id": application.id},
        )
        return application.user_id, RoutingResult(
            application_id=application.id,
            confidence=MatchConfidence.HIGH,
            signals=[RoutingSignal(type=SignalType.TOKEN_MATCH, weight=TOKEN_MATCH_WEIGHT)],
        )

    def _duplicate_result(self, user_id: UUID, existing: ApplicationMessage) -> InboundResult:
        inbound_duplicates_total.inc()
        logger.info(
            f"Skipping redelivered message {existing.message_id}",
            extra={"user_id": user_id, "application_id": existing.application_id},
        )
        return InboundResult(
            message_id=existing.id,
            user_id=user_id,
            application_id=existing.application_id,
            confidence=MatchConfidence(existing.match_confidence) if existing.match_confidence else None,
            duplicate=True,
        )

    def _archive_attachments(self, user_id: UUID, message_uuid: UUID, email: InboundEmail) -> list[str]:
        """Copy attachments to object storage. Best-effort, returns stored keys."""
        if self.storage is None or not email.attachments:
            return []

        keys = []
        for index, attachment in enumerate(email.attachments, start=1):
            if not attachment.content:
                continue
            key = inbound_attachment_key(user_id, message_uuid, index, attachment.filename)
            try:
                self.storage.upload(key, attachment.content, attachment.mime_type)
            except StorageError:
                attachment_archive_failures_total.inc()
                logger.warning(
                    f"Failed to archive inbound attachment {attachment.filename!r}",
                    extra={"user_id": user_id},
                    exc_info=True,
                )
                continue
            keys.append(key)
        return keys

    def _discard_attachments(self, keys: list[str]) -> None:
        """Remove objects archived for a message that was not stored."""
        for key in keys:
            try:
                self.storage.delete(key)
            except StorageError:
                logger.warning(f"Failed to remove orphaned attachment {key}", exc_info=True)

    @staticmethod
    def _build_payload(email: InboundEmail, recipient: str, attachment_keys: list[str]) -> dict[str, Any]:
        """Request snapshot stored with the message for audit."""
        return {
            "recipient": recipient,
            "recipient_raw": email.recipient,
            "sender": email.sender,
            "subject": email.subject,
            "message_id": email.message_id,
            "timestamp": email.timestamp,
            "attachment_count": email.attachment_count,
            "attachment_keys": attachment_keys,
        }
