"""Inbound email error taxonomy.

Every error carries the HTTP status the webhook answers with. All of them are
raised before the inbound message is persisted, except PersistenceError which
is raised when persisting itself fails (nothing is committed in that case, so
the provider may safely retry the whole delivery).
"""


class InboundEmailError(Exception):
    """Base exception for inbound email processing."""
    status_code = 500
    reason = "inbound_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnauthorizedError(InboundEmailError):
    status_code = 403
    reason = "unauthorized"


class SignatureInvalidError(UnauthorizedError):
    """Webhook signature does not verify against the signing key."""
    reason = "invalid_signature"

    def __init__(self, message: str = "Invalid signature"):
        super().__init__(message)


class TokenMismatchError(UnauthorizedError):
    """Reply token in the address does not belong to the resolved application."""
    reason = "token_mismatch"

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class RecipientUnrecognizedError(InboundEmailError):
    status_code = 400
    reason = "recipient_unrecognized"

    def __init__(self, message: str = "Recipient not recognized"):
        super().__init__(message)


class NotFoundError(InboundEmailError):
    status_code = 404
    reason = "not_found"


class ApplicationNotFoundError(NotFoundError):
    """No application, or more than one without a usable disambiguator."""
    reason = "application_not_found"

    def __init__(self, message: str = "Application not found"):
        super().__init__(message)


class AliasNotFoundError(NotFoundError):
    reason = "alias_not_found"

    def __init__(self, message: str = "Alias not found"):
        super().__init__(message)


class PersistenceError(InboundEmailError):
    status_code = 500
    reason = "persistence_failed"

    def __init__(self, message: str = "Failed to record message"):
        super().__init__(message)
