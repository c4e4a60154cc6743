"""Durable on-device offline queue models."""
from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from vocab_progress.db.base import LocalBase


class OfflineQueueEntry(LocalBase):
    """One pending write; ``seq`` is the replay order."""

    __tablename__ = "offline_queue"
    # Never reuse a sequence number after compaction.
    __table_args__ = {"sqlite_autoincrement": True}

    seq = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    kind = Column(String(20), nullable=False)
    payload = Column(JSON, nullable=False)
    enqueued_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class OfflineQueueCursor(LocalBase):
    """Last replayed ``seq`` per user."""

    __tablename__ = "offline_queue_cursor"

    user_id = Column(String(36), primary_key=True)
    position = Column(Integer, nullable=False, default=0)
