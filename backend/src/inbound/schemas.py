"""Pydantic schemas for the inbound webhook."""

from pydantic import BaseModel


class WebhookAck(BaseModel):
    """Body returned to Mailgun once a delivery has been handled."""
    success: bool = True
