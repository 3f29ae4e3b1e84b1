"""Unit tests for Mailgun webhook signature verification

Tests cover:
- Valid signature over timestamp + token
- Single-character tampering
- Missing fields fail closed
"""

import hashlib
import hmac

import pytest

import sys
from pathlib import Path
backend_src = Path(__file__).parent.parent.parent / "src"
sys.path.insert(0, str(backend_src))

from domain.inbound_email.signature import compute_signature, verify_mailgun_signature


SIGNING_KEY = "key-3ax6xnjp29jd6fds4gc373sgvjxteol0"
TIMESTAMP = "1529006854"
TOKEN = "a8ce0edb2dd8301dee6c2405235584e45aa91d1e9f979f3de0"


def expected_signature(key: str, timestamp: str, token: str) -> str:
    return hmac.new(key.encode(), f"{timestamp}{token}".encode(), hashlib.sha256).hexdigest()


class TestComputeSignature:

    def test_matches_hmac_sha256_hex(self):
        assert compute_signature(SIGNING_KEY, TIMESTAMP, TOKEN) == expected_signature(
            SIGNING_KEY, TIMESTAMP, TOKEN
        )

    def test_is_lowercase_hex_of_64_chars(self):
        signature = compute_signature(SIGNING_KEY, TIMESTAMP, TOKEN)
        assert len(signature) == 64
        assert signature == signature.lower()
        int(signature, 16)


class TestVerifySignature:

    def test_valid_signature_accepted(self):
        signature = expected_signature(SIGNING_KEY, TIMESTAMP, TOKEN)
        assert verify_mailgun_signature(SIGNING_KEY, TIMESTAMP, TOKEN, signature) is True

    @pytest.mark.parametrize("position", [0, 17, 63])
    def test_flipped_character_rejected(self, position):
        signature = expected_signature(SIGNING_KEY, TIMESTAMP, TOKEN)
        flipped = "0" if signature[position] != "0" else "1"
        tampered = signature[:position] + flipped + signature[position + 1:]

        assert verify_mailgun_signature(SIGNING_KEY, TIMESTAMP, TOKEN, tampered) is False

    def test_wrong_key_rejected(self):
        signature = expected_signature("another-key", TIMESTAMP, TOKEN)
        assert verify_mailgun_signature(SIGNING_KEY, TIMESTAMP, TOKEN, signature) is False

    def test_token_and_timestamp_are_concatenated_not_swapped(self):
        signature = expected_signature(SIGNING_KEY, TOKEN, TIMESTAMP)
        assert verify_mailgun_signature(SIGNING_KEY, TIMESTAMP, TOKEN, signature) is False

    @pytest.mark.parametrize("key,timestamp,token,signature", [
        ("", TIMESTAMP, TOKEN, "x" * 64),
        (SIGNING_KEY, "", TOKEN, "x" * 64),
        (SIGNING_KEY, TIMESTAMP, "", "x" * 64),
        (SIGNING_KEY, TIMESTAMP, TOKEN, ""),
        (None, TIMESTAMP, TOKEN, "x" * 64),
    ])
    def test_missing_input_fails_closed(self, key, timestamp, token, signature):
        assert verify_mailgun_signature(key, timestamp, token, signature) is False

    def test_empty_key_with_matching_signature_still_rejected(self):
        signature = expected_signature("", TIMESTAMP, TOKEN)
        assert verify_mailgun_signature("", TIMESTAMP, TOKEN, signature) is False
