"""Mail Sender Port - Domain interface for the outbound mail provider.

Architecture: Hexagonal - Port interface in domain layer
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from domain.mail.models import EmailAttachment, SentEmail


class MailSenderPort(ABC):
    """Port interface for sending email through the mail provider.

    Implementations raise on delivery failure; callers decide whether the
    failure is fatal.
    """

    @abstractmethod
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
        """Send one email.

        Args:
            from_address: Formatted sender ("Name <addr>")
            to: Recipient address
            subject: Subject line
            text: Plain text body
            html: Optional HTML body
            reply_to: Optional Reply-To header
            in_reply_to: Optional Message-Id this email answers (threading)
            attachments: Files to attach

        Returns:
            SentEmail: Provider message id and status message
        """
        pass
