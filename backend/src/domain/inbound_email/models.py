"""Inbound Email Domain Models

Dataclasses for inbound webhook deliveries, routing signals and routing results.
"""

from dataclasses import dataclass, field
from typing import Any, Optional
from uuid import UUID

from domain.mail.models import EmailAttachment
from models.application_message import MatchConfidence


class SignalType:
    """Routing signal identifiers as persisted in `match_signals`."""
    HEADER_MATCH = "header_match"
    SENDER_EXACT = "sender_exact"
    SENDER_DOMAIN = "sender_domain"
    SUBJECT_KEYWORD = "subject_keyword"
    RECENCY = "recency"
    TOKEN_MATCH = "token_match"


@dataclass(frozen=True)
class RoutingSignal:
    """One piece of evidence pointing at an application.

    Signals are immutable and kept in the order they were computed; the
    persisted list is the audit trail of a routing decision.
    """
    type: str
    weight: int
    application_id: Optional[UUID] = None
    matched_value: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type, "weight": self.weight}
        if self.matched_value is not None:
            data["matched_value"] = self.matched_value
        if self.application_id is not None:
            data["application_id"] = str(self.application_id)
        return data


@dataclass
class RoutingResult:
    """Outcome of routing an inbound reply.

    `application_id` is None when no application was linked; `confidence`
    is None only when the user has no routable application at all.
    """
    application_id: Optional[UUID] = None
    confidence: Optional[MatchConfidence] = None
    signals: list[RoutingSignal] = field(default_factory=list)

    @property
    def is_linked(self) -> bool:
        return self.application_id is not None

    @property
    def needs_manual_review(self) -> bool:
        return not self.is_linked or self.confidence == MatchConfidence.LOW

    def signals_as_dicts(self) -> list[dict[str, Any]]:
        return [signal.to_dict() for signal in self.signals]


@dataclass
class InboundEmail:
    """Fields of one Mailgun inbound webhook delivery."""
    timestamp: str = ""
    token: str = ""
    signature: str = ""
    recipient: str = ""
    sender: str = ""
    subject: str = ""
    text_body: str = ""
    html_body: str = ""
    message_id: str = ""
    in_reply_to: str = ""
    references: str = ""
    attachment_count: int = 0
    attachments: list[EmailAttachment] = field(default_factory=list)

    @property
    def thread_headers(self) -> dict[str, str]:
        return {"In-Reply-To": self.in_reply_to, "References": self.references}


@dataclass
class InboundResult:
    """Result of processing one webhook delivery."""
    message_id: Optional[UUID]
    user_id: UUID
    application_id: Optional[UUID]
    confidence: Optional[MatchConfidence]
    duplicate: bool = False
    forwarded: bool = False
