"""SQLAlchemy models for the reply relay"""

from .base import Base
from .user import User, Profile
from .user_email_alias import UserEmailAlias
from .job import Job
from .application import Application, ApplicationStatus, ROUTABLE_STATUSES
from .application_message import ApplicationMessage, MessageDirection, MatchConfidence

__all__ = [
    "Base",
    "User",
    "Profile",
    "UserEmailAlias",
    "Job",
    "Application",
    "ApplicationStatus",
    "ROUTABLE_STATUSES",
    "ApplicationMessage",
    "MessageDirection",
    "MatchConfidence",
]
