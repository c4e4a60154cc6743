"""SQLAlchemy declarative bases for the remote and the local store."""
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for models persisted in the remote progress store."""

    pass


class LocalBase(DeclarativeBase):
    """Base class for models kept in durable on-device storage."""

    pass
