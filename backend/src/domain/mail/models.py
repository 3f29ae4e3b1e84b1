"""Mail domain models shared by inbound forwarding and outbound sending."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class EmailAttachment:
    """A file attached to an email."""
    filename: str
    content: bytes
    mime_type: str = "application/octet-stream"

    @property
    def size_bytes(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class SentEmail:
    """Provider response for an accepted email."""
    provider_message_id: Optional[str]
    message: Optional[str] = None
