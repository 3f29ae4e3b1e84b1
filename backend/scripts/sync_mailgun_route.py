#!/usr/bin/env python
"""Ensure the Mailgun catch-all route forwards the relay domain to the webhook.

Safe to run repeatedly: an equivalent route is left alone, the route owned by
the relay is updated, and a new route is created only when neither exists.

Usage:
    python backend/scripts/sync_mailgun_route.py
    python backend/scripts/sync_mailgun_route.py --webhook-url https://app.klaro.tools/api/v1/webhooks/mailgun/inbound

Environment Variables:
    MAILGUN_API_KEY: Private API key (required)
    MAILGUN_DOMAIN: Relay domain (required)
    MAILGUN_API_BASE_URL: Regional API base URL (default: EU)
    MAILGUN_INBOUND_WEBHOOK_URL: Webhook URL (used if --webhook-url is omitted)
"""

import argparse
import sys
from pathlib import Path

# Add backend/src to Python path
backend_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(backend_src))

from config import RelayConfig, get_settings
from infrastructure.mailgun import MailgunClient, MailgunError


def main():
    parser = argparse.ArgumentParser(description="Sync the Mailgun inbound catch-all route")
    parser.add_argument("--webhook-url", help="Inbound webhook URL (default: MAILGUN_INBOUND_WEBHOOK_URL)")
    args = parser.parse_args()

    settings = get_settings()
    config = RelayConfig.from_settings(settings)

    if not config.api_key or not config.domain:
        print("ERROR: MAILGUN_API_KEY and MAILGUN_DOMAIN are required")
        sys.exit(1)

    webhook_url = args.webhook_url or settings.MAILGUN_INBOUND_WEBHOOK_URL
    if not webhook_url:
        print("ERROR: Pass --webhook-url or set MAILGUN_INBOUND_WEBHOOK_URL")
        sys.exit(1)

    client = MailgunClient.from_config(config)
    try:
        result = client.ensure_inbound_catch_all_route(webhook_url)
    except MailgunError as e:
        print(f"ERROR: {e}")
        sys.exit(1)
    finally:
        client.close()

    print(f"Route for {config.domain}: {result}")
    print(f"  Forwarding to: {webhook_url}")


if __name__ == "__main__":
    main()
