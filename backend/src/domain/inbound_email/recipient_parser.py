"""Recipient address parsing for inbound replies.

Relay addresses changed format several times and every issued address keeps
receiving mail, so all formats are still accepted:

    legacy    [reply+]<application uuid>-<token>@domain
    friendly  [reply+]<alias>.<8 hex application prefix>.<token>@domain
    short     [reply+]<alias>.<token containing a digit>@domain
    bare      <alias>@domain

Grammars are tried in that order and the first match wins. The later ones
are permissive (a friendly local part also matches the short grammar, a
short one without the digit guard would swallow `firstname.lastname`), so
the order is part of the format contract.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional


class AddressKind(str, Enum):
    LEGACY = "legacy"
    FRIENDLY = "friendly"
    SHORT = "short"
    BARE = "bare"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class ParsedRecipient:
    """Classified recipient local part.

    Legacy addresses carry `application_id` + `reply_token`; friendly ones
    `alias` + `app_short_id` + `reply_token`; short ones `alias` +
    `reply_token`; bare ones only `alias`.
    """
    kind: AddressKind
    application_id: Optional[str] = None
    app_short_id: Optional[str] = None
    reply_token: Optional[str] = None
    alias: Optional[str] = None

    @property
    def is_bare_alias(self) -> bool:
        return self.kind == AddressKind.BARE

    @property
    def is_explicit_reference(self) -> bool:
        return self.kind in (AddressKind.LEGACY, AddressKind.FRIENDLY, AddressKind.SHORT)

    @property
    def is_recognized(self) -> bool:
        return self.kind != AddressKind.UNRECOGNIZED


UNRECOGNIZED = ParsedRecipient(kind=AddressKind.UNRECOGNIZED)

_ANGLE_ADDRESS = re.compile(r"<\s*([a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,})\s*>", re.IGNORECASE)
_PLAIN_ADDRESS = re.compile(r"\b([a-z0-9._%+-]+@[a-z0-9.-]+\.[a-z]{2,})\b", re.IGNORECASE)
_REPLY_PREFIX = re.compile(r"^reply\+", re.IGNORECASE)

_LEGACY = re.compile(
    r"^([0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12})-([a-z0-9]{8,64})$",
    re.IGNORECASE,
)
_FRIENDLY = re.compile(r"^([a-z0-9._-]+)\.([0-9a-f]{8})\.([a-z0-9]{8,64})$", re.IGNORECASE)
_SHORT = re.compile(r"^([a-z0-9._-]+)\.([a-z0-9]{8,64})$", re.IGNORECASE)
_BARE = re.compile(r"^([a-z][a-z0-9._-]{0,30}[a-z0-9])$", re.IGNORECASE)
_DIGIT = re.compile(r"\d")


def extract_email_address(raw: Optional[str]) -> Optional[str]:
    """Pull the lowercase address out of a recipient field.

    Accepts `"Display Name <addr@domain>"` or a bare address. Returns None
    when neither form is present.
    """
    value = (raw or "").strip()
    if not value:
        return None

    match = _ANGLE_ADDRESS.search(value) or _PLAIN_ADDRESS.search(value)
    if not match:
        return None
    return match.group(1).lower()


def extract_local_part(address: Optional[str]) -> str:
    """Local part of an address, lowercase; empty if there is no `@`."""
    normalized = (address or "").strip().lower()
    if "@" not in normalized:
        return ""
    return normalized.split("@", 1)[0]


def extract_domain(address: Optional[str]) -> str:
    normalized = (address or "").strip().lower()
    if "@" not in normalized:
        return ""
    return normalized.rsplit("@", 1)[1]


def _legacy(match: re.Match) -> ParsedRecipient:
    return ParsedRecipient(
        kind=AddressKind.LEGACY,
        application_id=match.group(1).lower(),
        reply_token=match.group(2),
    )


def _friendly(match: re.Match) -> ParsedRecipient:
    return ParsedRecipient(
        kind=AddressKind.FRIENDLY,
        alias=match.group(1).lower(),
        app_short_id=match.group(2).lower(),
        reply_token=match.group(3),
    )


def _short(match: re.Match) -> Optional[ParsedRecipient]:
    # Natural names (firstname.lastname) rarely contain digits, issued tokens always do
    if not _DIGIT.search(match.group(2)):
        return None
    return ParsedRecipient(
        kind=AddressKind.SHORT,
        alias=match.group(1).lower(),
        reply_token=match.group(2),
    )


def _bare(match: re.Match) -> ParsedRecipient:
    return ParsedRecipient(kind=AddressKind.BARE, alias=match.group(1).lower())


# Precedence order, walked once per address
GRAMMARS: tuple[tuple[re.Pattern, Callable[[re.Match], Optional[ParsedRecipient]]], ...] = (
    (_LEGACY, _legacy),
    (_FRIENDLY, _friendly),
    (_SHORT, _short),
    (_BARE, _bare),
)


def classify_local_part(local_part: str) -> ParsedRecipient:
    """Classify a recipient local part against the address grammars."""
    candidate = _REPLY_PREFIX.sub("", local_part or "")
    if not candidate:
        return UNRECOGNIZED

    for pattern, build in GRAMMARS:
        match = pattern.match(candidate)
        if not match:
            continue
        parsed = build(match)
        if parsed is not None:
            return parsed

    return UNRECOGNIZED


def parse_recipient(address: Optional[str]) -> ParsedRecipient:
    """Classify a full recipient address (`local@domain`)."""
    local_part = extract_local_part(address)
    if not local_part:
        return UNRECOGNIZED
    return classify_local_part(local_part)
