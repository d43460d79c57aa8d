"""
SQLAlchemy Base Configuration

Declarative base, constraint naming and the column types shared by the
portal's tables.
"""

from sqlalchemy import DateTime, MetaData
from sqlalchemy.orm import declarative_base
from sqlalchemy.types import TypeDecorator

from quizportal.common.utils import ensure_utc

# Configure naming convention for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}

metadata = MetaData(naming_convention=convention)

Base = declarative_base(metadata=metadata)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp that always round-trips as UTC.

    Values are converted to UTC on write. On read, naive values (SQLite keeps
    no offset) are tagged as UTC, so deadline comparisons never mix naive and
    aware datetimes.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return ensure_utc(value)

    def process_result_value(self, value, dialect):
        return ensure_utc(value)


class ModelBase(Base):
    """Base class for all portal tables."""

    __abstract__ = True

    def __repr__(self):
        return f"<{type(self).__name__}(id='{getattr(self, 'id', None)}')>"
