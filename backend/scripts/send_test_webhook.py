#!/usr/bin/env python3
"""Post a signed Mailgun inbound delivery to a running relay.

Builds the same multipart form Mailgun sends, signs it with the configured
webhook signing key and prints the relay's answer. Useful for exercising the
routing paths locally without a real Mailgun account.

Usage:
    # Reply to a bare alias (smart routing)
    python backend/scripts/send_test_webhook.py --to max.mueller@klaro.tools \
        --from personal@klinikum-x.de --subject "AW: Ihre Bewerbung"

    # Reply to a token address with an attachment
    python backend/scripts/send_test_webhook.py --to max.mueller.k3x9p2m7q1w8@klaro.tools \
        --from personal@klinikum-x.de --attachment einladung.pdf

    # Thread headers and explicit Message-Id (redelivery testing)
    python backend/scripts/send_test_webhook.py --to max.mueller@klaro.tools \
        --from personal@klinikum-x.de --message-id "<r1@klinikum-x.de>" \
        --in-reply-to "<20261001.abc@klaro.tools>"
"""

import argparse
import mimetypes
import secrets
import sys
import time
from pathlib import Path
from typing import List

import httpx

# Add backend/src to Python path
backend_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(backend_src))

from config import get_settings
from domain.inbound_email.signature import compute_signature


def build_form(args: argparse.Namespace, signing_key: str) -> dict:
    timestamp = str(int(time.time()))
    token = secrets.token_hex(25)
    form = {
        "timestamp": timestamp,
        "token": token,
        "signature": compute_signature(signing_key, timestamp, token),
        "recipient": args.to,
        "sender": args.sender,
        "subject": args.subject,
        "body-plain": args.body,
        "attachment-count": str(len(args.attachment)),
    }
    if args.message_id:
        form["Message-Id"] = args.message_id
    if args.in_reply_to:
        form["In-Reply-To"] = args.in_reply_to
        form["References"] = args.in_reply_to
    return form


def build_files(paths: List[str]) -> list:
    files = []
    for index, path in enumerate(paths, start=1):
        file_path = Path(path)
        if not file_path.exists():
            print(f"ERROR: Attachment not found: {path}", file=sys.stderr)
            sys.exit(1)
        mime_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
        files.append((f"attachment-{index}", (file_path.name, file_path.read_bytes(), mime_type)))
    return files


def main():
    parser = argparse.ArgumentParser(description="Send a signed test delivery to the inbound webhook")
    parser.add_argument("--to", required=True, help="Recipient relay address")
    parser.add_argument("--from", dest="sender", required=True, help="Sender address")
    parser.add_argument("--subject", default="AW: Ihre Bewerbung", help="Subject")
    parser.add_argument("--body", default="Vielen Dank für Ihre Bewerbung.", help="Plain text body")
    parser.add_argument("--message-id", help="Message-Id header")
    parser.add_argument("--in-reply-to", help="In-Reply-To / References header")
    parser.add_argument("--attachment", action="append", default=[], help="File to attach (repeatable)")
    parser.add_argument(
        "--url",
        default="http://localhost:8000/api/v1/webhooks/mailgun/inbound",
        help="Webhook URL",
    )
    args = parser.parse_args()

    signing_key = get_settings().MAILGUN_WEBHOOK_SIGNING_KEY
    if not signing_key:
        print("ERROR: MAILGUN_WEBHOOK_SIGNING_KEY is not set", file=sys.stderr)
        sys.exit(1)

    try:
        response = httpx.post(
            args.url,
            data=build_form(args, signing_key),
            files=build_files(args.attachment) or None,
            timeout=30.0,
        )
    except httpx.HTTPError as e:
        print(f"ERROR: Request failed: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"{response.status_code} {response.text}")
    sys.exit(0 if response.is_success else 1)


if __name__ == "__main__":
    main()
