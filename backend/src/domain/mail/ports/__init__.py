from .mail_sender_port import MailSenderPort

__all__ = ["MailSenderPort"]
