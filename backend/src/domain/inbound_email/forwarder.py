"""Forwarder

Relays a stored inbound reply to the user's personal inbox. Forwarding is a
convenience on top of the stored message, so failures are logged and
swallowed.
"""

import html
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from domain.mail.ports import MailSenderPort
from models.user import Profile, User
from .models import InboundEmail, RoutingResult

logger = logging.getLogger(__name__)

FORWARD_SUBJECT_PREFIX = "Antwort auf deine Bewerbung: "
FORWARD_INTRO = "Weitergeleitete Antwort zu deiner Bewerbung."
UNMATCHED_NOTICE = (
    "Hinweis: Diese Nachricht konnte nicht eindeutig einer Bewerbung zugeordnet werden. "
    "Bitte prüfen Sie Ihre Inbox in der App."
)


def build_forward_text(email: InboundEmail, needs_review: bool) -> str:
    notice = f"\n\n{UNMATCHED_NOTICE}" if needs_review else ""
    return (
        f"{FORWARD_INTRO}\n\n"
        f"Von: {email.sender}\n"
        f"Betreff: {email.subject}{notice}\n\n"
        f"{email.text_body}"
    )


def build_forward_html(email: InboundEmail, needs_review: bool) -> str:
    intro = (
        '<div style="font-family: Arial, sans-serif; font-size: 14px;">'
        f"<p><strong>{FORWARD_INTRO}</strong></p>"
        f"<p>Von: {html.escape(email.sender)}<br/>Betreff: {html.escape(email.subject)}</p>"
    )
    if needs_review:
        intro += f'<p style="color: #b45309;"><em>{UNMATCHED_NOTICE}</em></p>'
    intro += "</div>"

    if email.html_body:
        return f"{intro}<hr/>{email.html_body}"
    return intro


class Forwarder:
    """Sends a copy of an inbound reply to the user."""

    def __init__(self, db: Session, mail_sender: MailSenderPort, from_address: str):
        self.db = db
        self.mail_sender = mail_sender
        self.from_address = from_address

    def resolve_user_email(self, user_id: UUID) -> Optional[str]:
        """Profile email, falling back to the account's login email."""
        profile_email = self.db.execute(
            select(Profile.email).where(Profile.user_id == user_id)
        ).scalar_one_or_none()
        if profile_email:
            return profile_email

        user = self.db.get(User, user_id)
        return user.email if user else None

    def forward(self, user_id: UUID, email: InboundEmail, routing: RoutingResult) -> bool:
        """Forward the reply. Returns True if the provider accepted it."""
        try:
            to = self.resolve_user_email(user_id)
            if not to:
                logger.warning(
                    "No personal email to forward reply to",
                    extra={"user_id": user_id},
                )
                return False

            needs_review = routing.needs_manual_review
            self.mail_sender.send(
                from_address=self.from_address,
                to=to,
                subject=f"{FORWARD_SUBJECT_PREFIX}{email.subject}",
                text=build_forward_text(email, needs_review),
                html=build_forward_html(email, needs_review),
                reply_to=email.sender or None,
                attachments=email.attachments,
            )
        except Exception:
            logger.error(
                "Failed to forward reply to user",
                extra={"user_id": user_id, "application_id": routing.application_id},
                exc_info=True,
            )
            return False

        logger.info(
            "Forwarded reply to user",
            extra={"user_id": user_id, "application_id": routing.application_id},
        )
        return True
