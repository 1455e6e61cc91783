"""
SQLAlchemy base configuration for the Contact Identity Resolution service
This module sets up the declarative base and the shared audit columns
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer
from sqlalchemy.orm import DeclarativeBase


def utcnow() -> datetime:
    """Timezone-aware current UTC time used for audit columns"""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models"""
    pass


class BaseModel(Base):
    """
    Abstract model carrying the primary key, audit timestamps and the
    soft-delete marker shared by every table
    """
    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    # Rows with a deleted_at value are invisible to the resolver
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    def to_dict(self):
        """Convert the mapped columns of this row to a plain dictionary"""
        return {column.name: getattr(self, column.name) for column in self.__table__.columns}
