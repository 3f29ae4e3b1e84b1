"""UserEmailAlias SQLAlchemy model"""

from sqlalchemy import Boolean, Column, ForeignKey, Index, Text, TIMESTAMP, Uuid, func
from uuid import uuid4

from .base import Base, utcnow


class UserEmailAlias(Base):
    """Relay address registered for a user (e.g. max.mueller@klaro.tools).

    Rows are provisioned by the web application. Deactivated rows are kept
    because addresses that were already handed out to hospitals keep
    receiving mail.
    """
    __tablename__ = "user_email_alias"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    full_address = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index('idx_user_email_alias_address', func.lower(full_address)),
    )

    def __repr__(self):
        return (
            f"<UserEmailAlias(user_id={self.user_id}, address={self.full_address}, "
            f"active={self.is_active})>"
        )
