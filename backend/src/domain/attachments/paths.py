"""Storage key helpers for user attachments.

Reply attachments uploaded by the web application live under
`{user_id}/reply-attachments/{application_id}/`; inbound attachments archived
by the relay under `{user_id}/inbound-attachments/{message_id}/`.

`authorize_attachment_path` and `load_reply_attachments` serve the
reply-to-hospital send path of the web application, which attaches files the
user uploaded for that application.
"""

import re
from uuid import UUID

from domain.attachments.ports import AttachmentStoragePort
from domain.mail.models import EmailAttachment


class StorageAccessError(Exception):
    """Path lies outside the prefix the caller is allowed to read."""
    pass


def sanitize_attachment_name(name: str) -> str:
    """Keep a filename safe for use as the last segment of a storage key."""
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", (name or "").strip())
    cleaned = cleaned.strip("._")
    return cleaned[:120] or "attachment"


def reply_attachment_prefix(user_id: UUID, application_id: UUID) -> str:
    return f"{user_id}/reply-attachments/{application_id}/"


def inbound_attachment_key(user_id: UUID, message_id: UUID, index: int, filename: str) -> str:
    return f"{user_id}/inbound-attachments/{message_id}/{index}-{sanitize_attachment_name(filename)}"


def authorize_attachment_path(path: str, user_id: UUID, application_id: UUID) -> str:
    """Normalize a requested path and ensure it belongs to the application.

    Returns:
        str: Normalized storage key

    Raises:
        StorageAccessError: If the path is outside the application's prefix
    """
    normalized = (path or "").lstrip("/")
    prefix = reply_attachment_prefix(user_id, application_id)
    if not normalized.startswith(prefix) or ".." in normalized.split("/"):
        raise StorageAccessError(f"Attachment path not allowed: {path}")
    return normalized


def load_reply_attachments(
    storage: AttachmentStoragePort,
    paths: list[str],
    user_id: UUID,
    application_id: UUID,
    max_total_bytes: int = 10 * 1024 * 1024,
) -> list[EmailAttachment]:
    """Download reply attachments for an application.

    Raises:
        StorageAccessError: If any path is outside the application's prefix
        ValueError: If the combined size exceeds max_total_bytes
    """
    attachments = []
    total = 0
    for path in paths:
        key = authorize_attachment_path(path, user_id, application_id)
        content = storage.download(key)
        total += len(content)
        if total > max_total_bytes:
            raise ValueError(f"Attachments exceed {max_total_bytes} bytes")
        attachments.append(EmailAttachment(
            filename=sanitize_attachment_name(key.rsplit("/", 1)[-1]),
            content=content,
        ))
    return attachments
