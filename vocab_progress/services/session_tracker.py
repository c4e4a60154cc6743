"""Learning session lifecycle: Closed -> Open -> Closed."""
from __future__ import annotations

import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Iterator

from loguru import logger

from vocab_progress.db.models.session import LEARNING_DIRECTIONS
from vocab_progress.utils.exceptions import ValidationError
from vocab_progress.utils.time import ensure_utc, utcnow

SessionHook = Callable[["SessionSnapshot"], None]


@dataclass(slots=True)
class SessionSnapshot:
    """Counters of one practice session."""

    id: uuid.UUID
    user_id: uuid.UUID
    direction: str
    started_at: datetime
    ended_at: datetime | None = None
    words_studied: int = 0
    correct_answers: int = 0

    @property
    def is_open(self) -> bool:
        return self.ended_at is None


class SessionTracker:
    """Track the single open session of a learner.

    ``on_open`` and ``on_close`` are called while the tracker lock is held, so
    a new session is never opened before the previous close has been handed
    to storage.
    """

    def __init__(
        self,
        user_id: uuid.UUID,
        *,
        clock: Callable[[], datetime] = utcnow,
        on_open: SessionHook | None = None,
        on_close: SessionHook | None = None,
    ) -> None:
        self.user_id = user_id
        self._clock = clock
        self._on_open = on_open
        self._on_close = on_close
        self._lock = threading.RLock()
        self._current: SessionSnapshot | None = None

    @property
    def is_open(self) -> bool:
        return self._current is not None

    def current(self) -> SessionSnapshot | None:
        with self._lock:
            return replace(self._current) if self._current else None

    @contextmanager
    def pinned(self) -> Iterator[SessionSnapshot | None]:
        """Keep the current session from changing while the caller records an answer."""

        with self._lock:
            yield replace(self._current) if self._current else None

    def start(self, direction: str) -> tuple[SessionSnapshot, SessionSnapshot | None]:
        """Open a session, closing the one still open first."""

        if direction not in LEARNING_DIRECTIONS:
            raise ValidationError(
                f"Unsupported learning direction: {direction!r}",
                {"allowed": list(LEARNING_DIRECTIONS)},
            )

        with self._lock:
            closed = self._close_locked()
            session = SessionSnapshot(
                id=uuid.uuid4(),
                user_id=self.user_id,
                direction=direction,
                started_at=ensure_utc(self._clock()),
            )
            self._current = session
            if self._on_open is not None:
                self._on_open(replace(session))
            logger.info(
                "Learning session started",
                user_id=str(self.user_id),
                session_id=str(session.id),
                direction=direction,
                auto_closed=closed is not None,
            )
            return replace(session), closed

    def record_answer(self, correct: bool) -> SessionSnapshot | None:
        """Count an answer against the open session; no-op when closed."""

        with self._lock:
            if self._current is None:
                return None
            self._current.words_studied += 1
            if correct:
                self._current.correct_answers += 1
            return replace(self._current)

    def end(self) -> SessionSnapshot | None:
        """Close the open session; calling it again is a no-op."""

        with self._lock:
            return self._close_locked()

    def _close_locked(self) -> SessionSnapshot | None:
        session = self._current
        if session is None:
            return None
        ended_at = ensure_utc(self._clock())
        session.ended_at = max(ended_at, session.started_at)
        self._current = None
        closed = replace(session)
        if self._on_close is not None:
            self._on_close(replace(closed))
        logger.info(
            "Learning session ended",
            user_id=str(self.user_id),
            session_id=str(closed.id),
            words_studied=closed.words_studied,
            correct_answers=closed.correct_answers,
        )
        return closed


__all__ = ["SessionSnapshot", "SessionTracker"]
