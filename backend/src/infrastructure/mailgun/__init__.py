from .client import MailgunClient, MailgunError

__all__ = ["MailgunClient", "MailgunError"]
