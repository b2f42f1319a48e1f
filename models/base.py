"""
Declarative base and shared column types for the chat platform models.

Every table gets a UUID primary key plus creation/update timestamps. The
``UUID`` column type maps to PostgreSQL's native UUID in production and to a
36-character string on SQLite, which the test suite runs against.
"""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, TypeDecorator
from sqlalchemy.dialects.postgresql import UUID as PostgreSQLUUID
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class UUID(TypeDecorator):
    """
    Platform-independent UUID type.

    Values always come back as :class:`uuid.UUID`, whichever dialect stored them.
    """

    impl = String
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PostgreSQLUUID())
        return dialect.type_descriptor(String(36))

    def process_bind_param(self, value, dialect):
        if value is None or dialect.name == "postgresql":
            return value
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))


class BaseModel(Base):
    """
    Abstract base for all persisted entities.

    :ivar id: Unique identifier for the record.
    :type id: UUID
    :ivar created_at: Timestamp representing when the record was created.
    :type created_at: datetime
    :ivar updated_at: Timestamp representing when the record was last updated.
    :type updated_at: datetime
    """

    __abstract__ = True

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
