"""Declarative base and shared column helpers for the relay models"""

from datetime import datetime, timezone

from sqlalchemy import JSON, TypeDecorator
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base


class PortableJSONB(TypeDecorator):
    """JSONB on PostgreSQL, plain JSON everywhere else.

    Holds routing signals, thread headers and request snapshots of inbound
    messages. The SQLite test database only understands JSON.
    """
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(JSON())


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp used as column default."""
    return datetime.now(timezone.utc)


Base = declarative_base()
