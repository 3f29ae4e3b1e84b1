"""User and Profile SQLAlchemy models"""

import re

from sqlalchemy import Column, Text, ForeignKey, TIMESTAMP, Uuid
from sqlalchemy.orm import relationship, validates
from uuid import uuid4

from .base import Base, utcnow


class User(Base):
    """Authentication account of an applicant.

    Only the fields the reply relay reads are mapped here; account management
    lives in the web application.
    """
    __tablename__ = "user"

    id = Column(Uuid, primary_key=True, default=uuid4)
    email = Column(Text, nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    profile = relationship("Profile", back_populates="user", uselist=False)

    @validates('email')
    def validate_email(self, key, value):
        """Basic email format validation"""
        if not re.match(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$', value):
            raise ValueError("Invalid email format")
        return value.lower()

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email})>"


class Profile(Base):
    """Applicant profile.

    `email` is the personal inbox replies are forwarded to. `alias_email` is
    the profile-level relay address issued before the alias registry existed;
    it is still consulted when resolving bare aliases.
    """
    __tablename__ = "profile"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(
        Uuid,
        ForeignKey("user.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )
    first_name = Column(Text, nullable=True)
    last_name = Column(Text, nullable=True)
    email = Column(Text, nullable=True)
    alias_email = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="profile")

    @validates('email', 'alias_email')
    def normalize_address(self, key, value):
        """Store addresses trimmed and lowercase."""
        if value is None:
            return None
        value = value.strip().lower()
        return value or None

    def __repr__(self):
        return f"<Profile(user_id={self.user_id}, alias_email={self.alias_email})>"
