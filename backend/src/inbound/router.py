"""Mailgun inbound webhook endpoint.

Mailgun posts every email addressed to the relay domain here as
multipart/form-data. The response code tells Mailgun whether to retry:
2xx acknowledges, 4xx drops, 5xx is retried later.
"""

import logging
import re
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from starlette.datastructures import FormData, UploadFile

from config import RelayConfig
from dependencies import get_inbound_service, get_relay_config
from domain.inbound_email.errors import InboundEmailError, SignatureInvalidError
from domain.inbound_email.models import InboundEmail
from domain.inbound_email.signature import verify_mailgun_signature
from domain.mail.models import EmailAttachment
from observability.metrics import inbound_rejections_total
from .schemas import WebhookAck
from .service import InboundEmailService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks/mailgun", tags=["Webhooks"])

DEFAULT_SUBJECT = "(ohne Betreff)"

_ATTACHMENT_FIELD = re.compile(r"^attachment-(\d+)$")


def _field(form: FormData, *names: str, default: str = "") -> str:
    """First present text field among `names` (Mailgun varies header casing)."""
    for name in names:
        value = form.get(name)
        if value is not None and not isinstance(value, UploadFile):
            return str(value)
    return default


def _attachment_count(form: FormData) -> int:
    try:
        return max(int(_field(form, "attachment-count", default="0")), 0)
    except ValueError:
        return 0


async def _read_attachments(form: FormData, count: int) -> list[EmailAttachment]:
    """Read the `attachment-N` file parts present in the form, N <= count."""
    uploads = []
    for name, value in form.multi_items():
        match = _ATTACHMENT_FIELD.match(name)
        if match is None or not isinstance(value, UploadFile):
            continue
        index = int(match.group(1))
        if 1 <= index <= count:
            uploads.append((index, value))
    uploads.sort(key=lambda item: item[0])

    attachments = []
    for _, upload in uploads:
        attachments.append(EmailAttachment(
            filename=upload.filename or "attachment",
            content=await upload.read(),
            mime_type=upload.content_type or "application/octet-stream",
        ))
    return attachments


async def parse_inbound_form(form: FormData) -> InboundEmail:
    """Map Mailgun's form fields onto an InboundEmail."""
    count = _attachment_count(form)
    return InboundEmail(
        timestamp=_field(form, "timestamp"),
        token=_field(form, "token"),
        signature=_field(form, "signature"),
        recipient=_field(form, "recipient"),
        sender=_field(form, "sender"),
        subject=_field(form, "subject", default=DEFAULT_SUBJECT),
        text_body=_field(form, "body-plain"),
        html_body=_field(form, "body-html"),
        message_id=_field(form, "Message-Id", "message-id"),
        in_reply_to=_field(form, "In-Reply-To", "in-reply-to"),
        references=_field(form, "References", "references"),
        attachment_count=count,
        attachments=await _read_attachments(form, count),
    )


@router.post("/inbound", response_model=WebhookAck)
async def receive_inbound_email(
    request: Request,
    config: Annotated[RelayConfig, Depends(get_relay_config)],
    service: Annotated[InboundEmailService, Depends(get_inbound_service)],
):
    """Receive a reply addressed to the relay domain.

    Returns:
        200 {"success": true} once the message is stored, linked or not

    Raises:
        HTTPException 400: Recipient matches no relay address format
        HTTPException 403: Invalid signature or reply token mismatch
        HTTPException 404: Application or alias not found
        HTTPException 500: Relay not configured or message could not be stored
    """
    if not config.is_configured:
        logger.error("Missing required Mailgun settings for inbound webhook")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server misconfigured",
        )

    form = await request.form()
    try:
        # Attachments are only read once the delivery is authenticated
        if not verify_mailgun_signature(
            config.signing_key,
            _field(form, "timestamp"),
            _field(form, "token"),
            _field(form, "signature"),
        ):
            logger.warning("Invalid Mailgun signature")
            inbound_rejections_total.labels(reason=SignatureInvalidError.reason).inc()
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid signature",
            )
        email = await parse_inbound_form(form)
    finally:
        await form.close()

    try:
        result = await run_in_threadpool(service.handle, email)
    except InboundEmailError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    logger.info(
        "Inbound webhook handled"
        + (" (duplicate)" if result.duplicate else ""),
        extra={
            "user_id": result.user_id,
            "application_id": result.application_id,
            "confidence": result.confidence,
        },
    )
    return WebhookAck()
