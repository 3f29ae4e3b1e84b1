"""Relay address builders.

Outbound mail carries a Reply-To on the relay domain. These helpers issue the
addresses that `domain.inbound_email.recipient_parser` later decodes, so the
two must stay in sync.

Called by the application send path (first email to a hospital) and the
reply-to-hospital path of the web application when they set Reply-To.
"""

import re
import secrets
import string
from typing import Optional
from uuid import UUID

_INVALID_ALIAS_CHARS = re.compile(r"[^a-z0-9._-]+")
_REPEATED_DOTS = re.compile(r"\.{2,}")

MAX_ALIAS_LENGTH = 32
MAX_GENERATED_ALIAS_LENGTH = 24
REPLY_TOKEN_LENGTH = 24

_TOKEN_ALPHABET = string.ascii_lowercase + string.digits


def sanitize_alias_part(value: Optional[str]) -> str:
    """Lowercase and reduce to `[a-z0-9._-]`, with no leading or trailing separators."""
    if not value:
        return ""
    cleaned = _INVALID_ALIAS_CHARS.sub(".", value.lower())
    cleaned = _REPEATED_DOTS.sub(".", cleaned)
    return cleaned.strip("._-")


def extract_alias_local_part(email: Optional[str]) -> str:
    if not email:
        return ""
    local_part = email.strip().lower().split("@")[0]
    return sanitize_alias_part(local_part)[:MAX_ALIAS_LENGTH]


def build_user_alias(
    user_id: UUID,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    profile_email: Optional[str] = None,
    auth_email: Optional[str] = None,
) -> str:
    """Derive a user's relay alias.

    Preference order:
        1. `first.last` from the profile name
        2. Local part of the profile email, then the login email
        3. `user` followed by the first 8 hex characters of the user id
    """
    name_alias = sanitize_alias_part(".".join(part for part in (first_name, last_name) if part))
    if name_alias:
        return name_alias[:MAX_GENERATED_ALIAS_LENGTH]

    email = profile_email or auth_email or ""
    mail_alias = sanitize_alias_part(email.split("@")[0])
    if mail_alias:
        return mail_alias[:MAX_GENERATED_ALIAS_LENGTH]

    return f"user{str(user_id).replace('-', '')[:8]}"


def resolve_user_alias(profile, auth_email: Optional[str], user_id: UUID) -> str:
    """Alias for a user: the provisioned alias address if any, else a derived one.

    Args:
        profile: Profile row or None
        auth_email: Login email of the account
        user_id: User UUID
    """
    if profile is not None:
        provisioned = extract_alias_local_part(profile.alias_email)
        if provisioned:
            return provisioned

    return build_user_alias(
        user_id,
        first_name=profile.first_name if profile is not None else None,
        last_name=profile.last_name if profile is not None else None,
        profile_email=profile.email if profile is not None else None,
        auth_email=auth_email,
    )


def build_reply_to_address(alias: str, domain: str) -> str:
    """Bare alias address used as Reply-To on new outbound mail."""
    return f"{sanitize_alias_part(alias)[:MAX_ALIAS_LENGTH]}@{domain}"


def build_short_reply_address(alias: str, reply_token: str, domain: str) -> str:
    return f"{sanitize_alias_part(alias)[:MAX_ALIAS_LENGTH]}.{reply_token.lower()}@{domain}"


def build_friendly_reply_address(
    alias: str,
    application_id: UUID,
    reply_token: str,
    domain: str,
) -> str:
    short_id = str(application_id).replace("-", "")[:8]
    return (
        f"{sanitize_alias_part(alias)[:MAX_ALIAS_LENGTH]}.{short_id}."
        f"{reply_token.lower()}@{domain}"
    )


def build_legacy_reply_address(application_id: UUID, reply_token: str, domain: str) -> str:
    return f"{str(application_id).lower()}-{reply_token.lower()}@{domain}"


def generate_reply_token(length: int = REPLY_TOKEN_LENGTH) -> str:
    """Random lowercase alphanumeric token containing at least one digit."""
    while True:
        token = "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))
        if any(char.isdigit() for char in token):
            return token
