"""Token-based direct routing for addresses that reference an application.

Handles legacy, friendly and short addresses. Ambiguity is never resolved by
guessing: a reply that cannot be pinned to exactly one application is
rejected and left for manual handling.
"""

import hmac
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from models.application import Application
from .errors import ApplicationNotFoundError, TokenMismatchError
from .recipient_parser import ParsedRecipient

logger = logging.getLogger(__name__)


def _tokens_equal(expected: Optional[str], presented: Optional[str]) -> bool:
    if not expected or not presented:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), presented.encode("utf-8"))


class DirectRouter:
    """Resolves explicit application references to an Application row."""

    def __init__(self, db: Session):
        self.db = db

    def resolve(self, parsed: ParsedRecipient) -> Application:
        """Find the application an explicit reference points at.

        Args:
            parsed: Legacy, friendly or short recipient

        Returns:
            Application: The referenced application

        Raises:
            ApplicationNotFoundError: Unknown application or unresolvable ambiguity
            TokenMismatchError: Token does not belong to the application
        """
        if parsed.application_id:
            application = self._by_id(parsed.application_id)
        elif parsed.reply_token:
            application = self._by_token(parsed)
        else:
            raise ApplicationNotFoundError()

        if parsed.reply_token and not _tokens_equal(application.reply_token, parsed.reply_token):
            logger.warning(
                f"Reply token mismatch for application {application.id}",
                extra={"application_id": application.id},
            )
            raise TokenMismatchError()

        return application

    def _by_id(self, application_id: str) -> Application:
        try:
            app_uuid = UUID(application_id)
        except ValueError:
            raise ApplicationNotFoundError()

        application = self.db.get(Application, app_uuid)
        if application is None:
            logger.warning(f"Application {application_id} not found")
            raise ApplicationNotFoundError()
        return application

    def _by_token(self, parsed: ParsedRecipient) -> Application:
        candidates = self.db.execute(
            select(Application).where(Application.reply_token == parsed.reply_token)
        ).scalars().all()

        if not candidates:
            logger.warning("No application carries the reply token")
            raise ApplicationNotFoundError()

        if len(candidates) == 1:
            return candidates[0]

        if parsed.app_short_id:
            narrowed = [
                app for app in candidates
                if str(app.id).lower().startswith(parsed.app_short_id)
            ]
        elif parsed.alias:
            markers = (f"{parsed.alias}.", f"{parsed.alias}@")
            narrowed = [
                app for app in candidates
                if any(marker in (app.reply_to or "").lower() for marker in markers)
            ]
        else:
            narrowed = []

        if len(narrowed) != 1:
            logger.warning(
                f"Reply token matched {len(candidates)} applications, "
                f"{len(narrowed)} after disambiguation"
            )
            raise ApplicationNotFoundError()

        return narrowed[0]
