"""Durable append-only log of writes awaiting the remote store.

Entries are never rewritten. The replay position of each user is kept in a
separate cursor row, so a process restart in the middle of a replay resumes
with the first entry that was not yet confirmed.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from loguru import logger
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from vocab_progress.db.models.offline_queue import OfflineQueueCursor, OfflineQueueEntry
from vocab_progress.utils.exceptions import ValidationError
from vocab_progress.utils.time import ensure_utc, utcnow

QUEUE_KINDS = ("progress", "session_start", "session_end")


@dataclass(slots=True)
class QueuedOperation:
    """A pending write read back from the log."""

    seq: int
    kind: str
    payload: dict[str, Any]
    enqueued_at: datetime


class OfflineQueue:
    """FIFO of pending writes for one user, persisted in the local store."""

    def __init__(self, session_factory: Callable[[], Session], *, user_id: uuid.UUID) -> None:
        self._session_factory = session_factory
        self.user_id = str(user_id)

    def _cursor_row(self, db: Session) -> OfflineQueueCursor:
        cursor = db.get(OfflineQueueCursor, self.user_id)
        if cursor is None:
            cursor = OfflineQueueCursor(user_id=self.user_id, position=0)
            db.add(cursor)
            db.flush()
        return cursor

    def append(self, kind: str, payload: dict[str, Any]) -> int:
        """Append a write to the end of the log and return its sequence number."""

        if kind not in QUEUE_KINDS:
            raise ValidationError(f"Unknown offline queue entry kind: {kind!r}")

        db = self._session_factory()
        try:
            entry = OfflineQueueEntry(
                user_id=self.user_id, kind=kind, payload=payload, enqueued_at=utcnow()
            )
            db.add(entry)
            db.commit()
            logger.debug("Queued offline write", user_id=self.user_id, kind=kind, seq=entry.seq)
            return entry.seq
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def cursor(self) -> int:
        db = self._session_factory()
        try:
            cursor = db.get(OfflineQueueCursor, self.user_id)
            return cursor.position if cursor else 0
        finally:
            db.close()

    def pending(self, limit: int | None = None) -> list[QueuedOperation]:
        """Return entries after the cursor in replay order."""

        db = self._session_factory()
        try:
            cursor = db.get(OfflineQueueCursor, self.user_id)
            position = cursor.position if cursor else 0
            stmt = (
                select(OfflineQueueEntry)
                .where(OfflineQueueEntry.user_id == self.user_id)
                .where(OfflineQueueEntry.seq > position)
                .order_by(OfflineQueueEntry.seq.asc())
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            return [
                QueuedOperation(
                    seq=entry.seq,
                    kind=entry.kind,
                    payload=dict(entry.payload),
                    enqueued_at=ensure_utc(entry.enqueued_at),
                )
                for entry in db.scalars(stmt)
            ]
        finally:
            db.close()

    def peek(self) -> QueuedOperation | None:
        items = self.pending(limit=1)
        return items[0] if items else None

    def pending_count(self) -> int:
        db = self._session_factory()
        try:
            cursor = db.get(OfflineQueueCursor, self.user_id)
            position = cursor.position if cursor else 0
            return db.scalar(
                select(func.count(OfflineQueueEntry.seq))
                .where(OfflineQueueEntry.user_id == self.user_id)
                .where(OfflineQueueEntry.seq > position)
            ) or 0
        finally:
            db.close()

    def advance(self, seq: int) -> None:
        """Mark every entry up to ``seq`` as replayed."""

        db = self._session_factory()
        try:
            cursor = self._cursor_row(db)
            if seq <= cursor.position:
                db.rollback()
                return
            cursor.position = seq
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def compact(self) -> int:
        """Delete replayed entries; returns how many were removed."""

        db = self._session_factory()
        try:
            cursor = db.get(OfflineQueueCursor, self.user_id)
            if cursor is None or cursor.position == 0:
                return 0
            result = db.execute(
                delete(OfflineQueueEntry)
                .where(OfflineQueueEntry.user_id == self.user_id)
                .where(OfflineQueueEntry.seq <= cursor.position)
            )
            db.commit()
            return result.rowcount or 0
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


__all__ = ["OfflineQueue", "QUEUE_KINDS", "QueuedOperation"]
