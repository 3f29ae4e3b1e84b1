"""Smart Router

Routes replies sent to a bare alias to one of the alias owner's applications.
Loads the user's applications and recorded message ids, then delegates the
scoring to the pure functions in `scoring`.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from models.application import Application, ROUTABLE_STATUSES
from models.application_message import ApplicationMessage, MatchConfidence
from .models import RoutingResult, RoutingSignal, SignalType
from .scoring import (
    HEADER_MATCH_WEIGHT,
    ApplicationCandidate,
    extract_message_ids,
    score_candidates,
)

logger = logging.getLogger(__name__)


class SmartRouter:
    """Multi-signal router scoped to a single user.

    Every query filters on `user_id`, so a reply can only ever be linked to
    an application owned by the alias owner.
    """

    def __init__(self, db: Session, user_id: UUID):
        self.db = db
        self.user_id = user_id

    def route(
        self,
        sender_email: str,
        subject: str,
        in_reply_to: str = "",
        references: str = "",
    ) -> RoutingResult:
        """Pick the application a reply belongs to.

        Args:
            sender_email: Envelope sender of the reply
            subject: Reply subject
            in_reply_to: Raw In-Reply-To header
            references: Raw References header

        Returns:
            RoutingResult with linked application (or None), confidence and signals
        """
        applications = self._load_applications()
        if not applications:
            logger.info(
                "No routable applications for user",
                extra={"user_id": self.user_id},
            )
            return RoutingResult()

        header_ids = extract_message_ids(in_reply_to) + extract_message_ids(references)
        header_signal = self._match_thread_headers(header_ids)
        if header_signal is not None:
            return RoutingResult(
                application_id=header_signal.application_id,
                confidence=MatchConfidence.HIGH,
                signals=[header_signal],
            )

        candidates = [
            ApplicationCandidate(
                id=app.id,
                recipient_email=app.recipient_email,
                subject=app.subject,
                has_job=app.job is not None,
                job_title=app.job.title if app.job else None,
                hospital_name=app.job.hospital_name if app.job else None,
            )
            for app in applications
        ]
        result = score_candidates(candidates, sender_email, subject)

        logger.info(
            f"Smart routing scored {len(candidates)} applications: "
            f"confidence={result.confidence.value if result.confidence else None}, "
            f"signals={len(result.signals)}",
            extra={"user_id": self.user_id, "application_id": result.application_id},
        )
        return result

    def _load_applications(self) -> list[Application]:
        return self.db.execute(
            select(Application)
            .options(selectinload(Application.job))
            .where(
                Application.user_id == self.user_id,
                Application.status.in_(ROUTABLE_STATUSES),
            )
            .order_by(Application.updated_at.desc(), Application.id)
        ).scalars().all()

    def _match_thread_headers(self, header_ids: list[str]) -> Optional[RoutingSignal]:
        """Header signal for the first recorded message referenced by the thread headers."""
        if not header_ids:
            return None

        # Provider ids are recorded with or without angle brackets
        lookup_ids = header_ids + [f"<{value}>" for value in header_ids]

        message = self.db.execute(
            select(ApplicationMessage)
            .join(Application, ApplicationMessage.application_id == Application.id)
            .where(
                ApplicationMessage.user_id == self.user_id,
                Application.user_id == self.user_id,
                or_(
                    ApplicationMessage.message_id.in_(lookup_ids),
                    ApplicationMessage.provider_message_id.in_(lookup_ids),
                ),
            )
            .order_by(ApplicationMessage.created_at.desc())
            .limit(1)
        ).scalars().first()

        if message is None:
            return None

        logger.debug(f"Thread header matched message {message.id}")
        return RoutingSignal(
            type=SignalType.HEADER_MATCH,
            weight=HEADER_MATCH_WEIGHT,
            application_id=message.application_id,
            matched_value=message.message_id or message.provider_message_id,
        )
