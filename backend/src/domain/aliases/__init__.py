"""Relay address builders shared by the outbound send paths."""

from .alias_builder import (
    sanitize_alias_part,
    extract_alias_local_part,
    build_user_alias,
    resolve_user_alias,
    build_reply_to_address,
    build_short_reply_address,
    build_friendly_reply_address,
    build_legacy_reply_address,
    generate_reply_token,
)

__all__ = [
    "sanitize_alias_part",
    "extract_alias_local_part",
    "build_user_alias",
    "resolve_user_alias",
    "build_reply_to_address",
    "build_short_reply_address",
    "build_friendly_reply_address",
    "build_legacy_reply_address",
    "generate_reply_token",
]
