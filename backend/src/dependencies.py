"""Global FastAPI dependencies.

This module provides:
- get_relay_config: Mail relay configuration built from Settings
- get_mail_sender: Shared Mailgun client (None until Mailgun is configured)
- get_attachment_storage: Shared S3 attachment storage (None if unavailable)
- get_inbound_service: Inbound webhook service for the current request

Tests override these with `app.dependency_overrides`.
"""

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from config import RelayConfig, get_settings
from database import get_db
from domain.attachments.ports import AttachmentStoragePort, StorageError
from domain.mail.ports import MailSenderPort
from inbound.service import InboundEmailService
from infrastructure.mailgun import MailgunClient
from infrastructure.storage.s3_storage_adapter import S3AttachmentStorage
from infrastructure.storage.storage_config import build_storage_config

logger = logging.getLogger(__name__)


def get_relay_config() -> RelayConfig:
    return RelayConfig.from_settings(get_settings())


@lru_cache()
def _mailgun_client(config: RelayConfig) -> MailgunClient:
    return MailgunClient.from_config(config)


def get_mail_sender(
    config: RelayConfig = Depends(get_relay_config),
) -> Optional[MailSenderPort]:
    """Mailgun client shared across requests.

    Returns None while the relay is not configured; the webhook answers 500
    before it would need the client.
    """
    if not config.is_configured:
        return None
    return _mailgun_client(config)


@lru_cache()
def get_attachment_storage() -> Optional[AttachmentStoragePort]:
    """S3 attachment storage shared across requests.

    Returns None if storage cannot be configured. Inbound replies are still
    stored without archived attachments in that case.
    """
    try:
        return S3AttachmentStorage.from_config(build_storage_config(get_settings()))
    except (ValueError, StorageError) as e:
        logger.warning(f"Attachment storage unavailable: {e}")
        return None


def get_inbound_service(
    db: Session = Depends(get_db),
    config: RelayConfig = Depends(get_relay_config),
    mail_sender: Optional[MailSenderPort] = Depends(get_mail_sender),
    storage: Optional[AttachmentStoragePort] = Depends(get_attachment_storage),
) -> InboundEmailService:
    return InboundEmailService(db, config, mail_sender, storage)
