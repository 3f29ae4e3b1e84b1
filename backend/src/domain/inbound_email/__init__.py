"""Inbound Email Domain Module

Authenticates Mailgun inbound webhooks, decodes relay recipient addresses and
links hospital replies to the right job application, either directly through
a reply token or by multi-signal scoring for bare alias addresses.
"""

from .errors import (
    InboundEmailError,
    UnauthorizedError,
    SignatureInvalidError,
    TokenMismatchError,
    RecipientUnrecognizedError,
    NotFoundError,
    ApplicationNotFoundError,
    AliasNotFoundError,
    PersistenceError,
)
from .models import InboundEmail, InboundResult, RoutingResult, RoutingSignal, SignalType
from .recipient_parser import AddressKind, ParsedRecipient, extract_email_address, parse_recipient
from .signature import verify_mailgun_signature

__all__ = [
    "InboundEmailError",
    "UnauthorizedError",
    "SignatureInvalidError",
    "TokenMismatchError",
    "RecipientUnrecognizedError",
    "NotFoundError",
    "ApplicationNotFoundError",
    "AliasNotFoundError",
    "PersistenceError",
    "InboundEmail",
    "InboundResult",
    "RoutingResult",
    "RoutingSignal",
    "SignalType",
    "AddressKind",
    "ParsedRecipient",
    "extract_email_address",
    "parse_recipient",
    "verify_mailgun_signature",
]
