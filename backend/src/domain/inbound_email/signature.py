"""Mailgun webhook signature verification.

Mailgun signs every webhook with HMAC-SHA256 over `timestamp + token` using
the account's webhook signing key and sends the hex digest as `signature`.
"""

import hashlib
import hmac
from typing import Optional


def compute_signature(signing_key: str, timestamp: str, token: str) -> str:
    """Hex HMAC-SHA256 of timestamp+token keyed with the signing key."""
    return hmac.new(
        signing_key.encode("utf-8"),
        f"{timestamp}{token}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify_mailgun_signature(
    signing_key: Optional[str],
    timestamp: Optional[str],
    token: Optional[str],
    signature: Optional[str],
) -> bool:
    """Verify a webhook signature. Fails closed on any missing input."""
    if not signing_key or not timestamp or not token or not signature:
        return False

    expected = compute_signature(signing_key, timestamp, token)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))
