"""Mailgun HTTP API client.

Sends mail through the messages API and manages the inbound route that
forwards every address of the relay domain to the inbound webhook.
"""

import logging
import re
from typing import Any, Optional, Sequence

import httpx

from config import RelayConfig
from domain.mail.models import EmailAttachment, SentEmail
from domain.mail.ports import MailSenderPort

logger = logging.getLogger(__name__)

INBOUND_ROUTE_DESCRIPTION = "klaro-inbound-catchall-v2"
ROUTE_LIST_LIMIT = 100

_ROUTE_EXPRESSION_SPECIALS = re.compile(r"([.*+?^${}()|\[\]\\])")


class MailgunError(Exception):
    """Mailgun API call failed or returned a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def escape_route_expression(value: str) -> str:
    """Escape regex metacharacters for a Mailgun route expression."""
    return _ROUTE_EXPRESSION_SPECIALS.sub(r"\\\1", value)


def catch_all_expression(domain: str) -> str:
    return f'match_recipient(".*@{escape_route_expression(domain.lower())}$")'


def forward_action(webhook_url: str) -> str:
    return f'forward("{webhook_url}")'


class MailgunClient(MailSenderPort):
    """Synchronous Mailgun client.

    Args:
        api_key: Private API key (basic auth user `api`)
        domain: Sending and receiving domain
        api_base_url: Regional API base URL
        timeout_seconds: Per-request timeout
        http_client: Optional preconfigured httpx.Client (tests inject a
            MockTransport here)
    """

    def __init__(
        self,
        api_key: str,
        domain: str,
        api_base_url: str = "https://api.eu.mailgun.net",
        timeout_seconds: float = 15.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self.domain = domain.lower()
        self.api_base_url = api_base_url.rstrip("/")
        self._client = http_client or httpx.Client(timeout=timeout_seconds)
        self._auth = httpx.BasicAuth("api", api_key)

    @classmethod
    def from_config(cls, config: RelayConfig, http_client: Optional[httpx.Client] = None) -> "MailgunClient":
        return cls(
            api_key=config.api_key,
            domain=config.domain,
            api_base_url=config.api_base_url,
            timeout_seconds=config.timeout_seconds,
            http_client=http_client,
        )

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self.api_base_url}{path}"
        try:
            response = self._client.request(method, url, auth=self._auth, **kwargs)
        except httpx.TimeoutException as e:
            raise MailgunError(f"Mailgun request timed out: {method} {path}") from e
        except httpx.HTTPError as e:
            raise MailgunError(f"Mailgun request failed: {e.__class__.__name__}") from e

        if not response.is_success:
            logger.error(
                f"Mailgun API error: {method} {path} -> {response.status_code} {response.text[:500]}"
            )
            raise MailgunError(
                f"Mailgun API error: {response.status_code}",
                status_code=response.status_code,
            )
        return response

    def send(
        self,
        from_address: str,
        to: str,
        subject: str,
        text: str,
        html: Optional[str] = None,
        reply_to: Optional[str] = None,
        in_reply_to: Optional[str] = None,
        attachments: Sequence[EmailAttachment] = (),
    ) -> SentEmail:
        """Send an email through the messages API.

        Raises:
            MailgunError: If Mailgun rejects the message or is unreachable
        """
        data: dict[str, Any] = {
            "from": from_address,
            "to": to,
            "subject": subject,
            "text": text,
        }
        if html:
            data["html"] = html
        if reply_to:
            data["h:Reply-To"] = reply_to
        if in_reply_to:
            data["h:In-Reply-To"] = in_reply_to
            data["h:References"] = in_reply_to

        files = [
            ("attachment", (attachment.filename, attachment.content, attachment.mime_type))
            for attachment in attachments
        ]

        response = self._request(
            "POST",
            f"/v3/{self.domain}/messages",
            data=data,
            files=files or None,
        )
        body = response.json()
        logger.info(f"Mailgun accepted message {body.get('id')}")
        return SentEmail(provider_message_id=body.get("id"), message=body.get("message"))

    def list_routes(self, limit: int = ROUTE_LIST_LIMIT) -> list[dict[str, Any]]:
        response = self._request("GET", "/v3/routes", params={"limit": limit})
        items = response.json().get("items")
        return items if isinstance(items, list) else []

    def create_route(self, description: str, expression: str, actions: Sequence[str], priority: int = 0) -> dict[str, Any]:
        response = self._request(
            "POST",
            "/v3/routes",
            data=self._route_form(description, expression, actions, priority),
        )
        return response.json()

    def update_route(
        self,
        route_id: str,
        description: str,
        expression: str,
        actions: Sequence[str],
        priority: int = 0,
    ) -> dict[str, Any]:
        response = self._request(
            "PUT",
            f"/v3/routes/{route_id}",
            data=self._route_form(description, expression, actions, priority),
        )
        return response.json()

    @staticmethod
    def _route_form(description: str, expression: str, actions: Sequence[str], priority: int) -> dict[str, Any]:
        return {
            "priority": str(priority),
            "description": description,
            "expression": expression,
            "action": list(actions),
        }

    def ensure_inbound_catch_all_route(self, webhook_url: str) -> str:
        """Make sure every address of the domain is forwarded to the webhook.

        An existing route for the domain that already forwards to the webhook
        is left alone. Otherwise the route owned by this service is updated,
        or created when missing.

        Returns:
            str: "exists", "updated" or "created"

        Raises:
            MailgunError: If listing, updating or creating the route fails
        """
        expression = catch_all_expression(self.domain)
        actions = [forward_action(webhook_url), "stop()"]
        domain_tokens = (f"@{self.domain}", f"@{escape_route_expression(self.domain)}")

        routes = self.list_routes()
        for route in routes:
            route_expression = (route.get("expression") or "").lower()
            route_actions = route.get("actions") or []
            if any(token in route_expression for token in domain_tokens) and actions[0] in route_actions:
                logger.info(f"Inbound route for {self.domain} already forwards to {webhook_url}")
                return "exists"

        owned = next(
            (route for route in routes if route.get("description") == INBOUND_ROUTE_DESCRIPTION),
            None,
        )
        if owned and owned.get("id"):
            self.update_route(owned["id"], INBOUND_ROUTE_DESCRIPTION, expression, actions)
            logger.info(f"Updated inbound route {owned['id']} for {self.domain}")
            return "updated"

        self.create_route(INBOUND_ROUTE_DESCRIPTION, expression, actions)
        logger.info(f"Created inbound route for {self.domain}")
        return "created"
