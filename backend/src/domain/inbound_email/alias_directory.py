"""Alias Directory

Maps a bare relay address (max.mueller@klaro.tools) to the user who owns it.
Alias provisioning changed over time, so several sources are consulted in order.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from models.application import Application
from models.user import Profile
from models.user_email_alias import UserEmailAlias
from .errors import AliasNotFoundError
from .recipient_parser import extract_local_part

logger = logging.getLogger(__name__)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class AliasDirectory:
    """Resolves bare alias addresses to user ids.

    Lookup order:
    1. Active alias registry row with the exact address
    2. Profile-level alias field (users provisioned before the registry)
    3. Profile whose personal email has the same local part, if only one does
    4. Inactive alias registry row, if only one user owns it
    5. The single user owning applications whose reply address equals it
    """

    def __init__(self, db: Session):
        self.db = db

    def resolve_user_id(self, address: str) -> UUID:
        """Resolve the owner of a relay address.

        Raises:
            AliasNotFoundError: If no source resolves to exactly one user
        """
        normalized = (address or "").strip().lower()
        local_part = extract_local_part(normalized)

        lookups = (
            ("active_alias", lambda: self._by_active_alias(normalized)),
            ("profile_alias", lambda: self._by_profile_alias(normalized)),
            ("personal_email_local_part", lambda: self._by_personal_email_local_part(local_part)),
            ("any_alias", lambda: self._by_any_alias(normalized)),
            ("application_reply_to", lambda: self._by_application_reply_to(normalized)),
        )

        for source, lookup in lookups:
            user_id = lookup()
            if user_id:
                logger.debug(f"Alias {normalized} resolved via {source}")
                return user_id

        logger.warning(f"Bare alias not found: {normalized}")
        raise AliasNotFoundError()

    def _single_user(self, stmt) -> Optional[UUID]:
        """Return the user id if the statement yields exactly one distinct user."""
        user_ids = set(self.db.execute(stmt).scalars().all())
        if len(user_ids) == 1:
            return user_ids.pop()
        return None

    def _by_active_alias(self, address: str) -> Optional[UUID]:
        return self._single_user(
            select(UserEmailAlias.user_id).where(
                func.lower(UserEmailAlias.full_address) == address,
                UserEmailAlias.is_active == True,
            )
        )

    def _by_profile_alias(self, address: str) -> Optional[UUID]:
        return self._single_user(
            select(Profile.user_id).where(func.lower(Profile.alias_email) == address)
        )

    def _by_personal_email_local_part(self, local_part: str) -> Optional[UUID]:
        if not local_part:
            return None
        return self._single_user(
            select(Profile.user_id)
            .where(func.lower(Profile.email).like(f"{_escape_like(local_part)}@%", escape="\\"))
            .limit(2)
        )

    def _by_any_alias(self, address: str) -> Optional[UUID]:
        return self._single_user(
            select(UserEmailAlias.user_id)
            .where(func.lower(UserEmailAlias.full_address) == address)
            .limit(2)
        )

    def _by_application_reply_to(self, address: str) -> Optional[UUID]:
        return self._single_user(
            select(Application.user_id).where(func.lower(Application.reply_to) == address)
        )
