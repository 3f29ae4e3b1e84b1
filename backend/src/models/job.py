"""Job SQLAlchemy model"""

from sqlalchemy import Column, Text, TIMESTAMP, Uuid
from uuid import uuid4

from .base import Base, utcnow


class Job(Base):
    """Hospital job posting an application was sent for.

    Only title and hospital name are mapped; both feed subject keyword
    matching when routing replies.
    """
    __tablename__ = "job"

    id = Column(Uuid, primary_key=True, default=uuid4)
    title = Column(Text, nullable=True)
    hospital_name = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)

    def __repr__(self):
        return f"<Job(id={self.id}, title={self.title}, hospital={self.hospital_name})>"
