"""Single entry point the UI talks to.

The facade keeps an in-memory copy of the learner's progress rows and
gamification state. Answers are handed to the :class:`ProgressStore`; when
the store persisted them the cache takes the stored values, and when they
were queued the cache takes a local projection so the UI still reflects the
answer immediately.
"""
from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Protocol

from loguru import logger
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from vocab_progress.core.gamification import (
    AchievementDefinition,
    AchievementStats,
    GamificationEngine,
    GamificationState,
)
from vocab_progress.core.mastery import MAX_MASTERY_LEVEL, compute_mastery_level
from vocab_progress.core.records import DueWordsBreakdown, WordProgress
from vocab_progress.core.scheduler import ReviewScheduler
from vocab_progress.schemas.progress import ProgressEvent, ProgressStats
from vocab_progress.services.offline_queue import OfflineQueue
from vocab_progress.services.progress_store import ProgressStore, ReplayReport
from vocab_progress.services.session_tracker import SessionSnapshot, SessionTracker
from vocab_progress.utils.exceptions import TransientStorageError, ValidationError
from vocab_progress.utils.time import ensure_utc, utcnow

OFFLINE_MESSAGE = "offline — progress saved locally"

# Levels counted by get_stats; MASTER_N achievements use level 5 instead.
STATS_MASTERED_LEVEL = 4
STATS_IN_PROGRESS_LEVELS = range(1, 4)


class DifficultyRatingHandler(Protocol):
    """Optional UI capability notified when an answer carries a rating."""

    def on_difficulty_rating(self, word_id: int, rating: int, progress: WordProgress) -> None:
        ...


@dataclass(slots=True)
class UpdateResult:
    progress: WordProgress
    gamification: GamificationState
    unlocked: List[AchievementDefinition] = field(default_factory=list)
    session: SessionSnapshot | None = None
    queued: bool = False
    message: str | None = None


class ProgressFacade:
    """Aggregate the progress engine for one learner."""

    def __init__(
        self,
        store: ProgressStore,
        *,
        clock: Callable[[], datetime] = utcnow,
        difficulty_handler: DifficultyRatingHandler | None = None,
    ) -> None:
        self.store = store
        self.user_id = store.user_id
        self.scheduler = store.scheduler
        self.engine = store.engine
        self.difficulty_handler = difficulty_handler
        self._clock = clock
        self.tracker = SessionTracker(
            self.user_id,
            clock=clock,
            on_open=self._persist_session_start,
            on_close=self._persist_session_end,
        )

        self._progress: Dict[int, WordProgress] = {}
        self._gamification = GamificationState()
        self._unlocked: Dict[str, datetime | None] = {}
        self._state_lock = threading.Lock()
        self._word_locks: Dict[int, threading.Lock] = {}
        self._word_locks_guard = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings,
        *,
        user_id: uuid.UUID,
        session_factory: Callable[[], Session],
        local_session_factory: Callable[[], Session],
        clock: Callable[[], datetime] = utcnow,
    ) -> "ProgressFacade":
        store = ProgressStore(
            session_factory,
            OfflineQueue(local_session_factory, user_id=user_id),
            user_id=user_id,
            scheduler=ReviewScheduler.from_settings(settings),
            engine=GamificationEngine.from_settings(settings),
            retry_attempts=settings.STORAGE_RETRY_ATTEMPTS,
            retry_backoff=settings.STORAGE_RETRY_BACKOFF_SECONDS,
            retry_max_wait=settings.STORAGE_RETRY_MAX_WAIT_SECONDS,
        )
        return cls(store, clock=clock)

    # ------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------
    def load(self) -> bool:
        """Fill the caches from the store; returns ``False`` when offline."""

        if self.store.pending_count():
            # Stored rows lag behind the queue until it is drained.
            if not self.store.is_online or self.store.replay().remaining:
                logger.warning(
                    "Offline writes pending, keeping the local progress cache",
                    user_id=str(self.user_id),
                )
                return False
        try:
            progress = self.store.load_progress()
            state, unlocked = self.store.load_gamification()
        except TransientStorageError as exc:
            self.store.set_online(False)
            logger.warning(
                "Could not load progress, continuing offline",
                user_id=str(self.user_id),
                error=exc.message,
            )
            return False

        with self._state_lock:
            self._progress = progress
            self._gamification = state
            self._unlocked = unlocked
        logger.debug("Progress cache loaded", user_id=str(self.user_id), words=len(progress))
        return True

    def _word_lock(self, word_id: int) -> threading.Lock:
        with self._word_locks_guard:
            lock = self._word_locks.get(word_id)
            if lock is None:
                lock = self._word_locks[word_id] = threading.Lock()
            return lock

    # ------------------------------------------------------------------
    # Answers
    # ------------------------------------------------------------------
    def update_progress(
        self,
        word_id: int,
        correct: bool,
        *,
        difficulty_rating: int | None = None,
        response_time_ms: int | None = None,
    ) -> UpdateResult:
        """Record one answer and return the refreshed progress of the word."""

        now = ensure_utc(self._clock())
        # The session the event is tagged with is the one the answer is counted in.
        with self.tracker.pinned() as session:
            try:
                event = ProgressEvent(
                    user_id=self.user_id,
                    word_id=word_id,
                    correct=correct,
                    occurred_at=now,
                    session_id=session.id if session else None,
                    difficulty_rating=difficulty_rating,
                    response_time_ms=response_time_ms,
                )
            except PydanticValidationError as exc:
                raise ValidationError(
                    "Invalid progress event",
                    {"errors": exc.errors(include_url=False, include_context=False)},
                ) from exc

            with self._word_lock(word_id):
                stored = self.store.apply_event(event)
                with self._state_lock:
                    if stored.queued:
                        progress, state, unlocked = self._project(event, session)
                    else:
                        progress, state, unlocked = (
                            stored.progress,
                            stored.gamification,
                            stored.unlocked,
                        )
                    self._progress[word_id] = progress
                    self._gamification = state
                    for definition in unlocked:
                        self._unlocked.setdefault(definition.type, now)
                snapshot = self.tracker.record_answer(event.correct)

        if difficulty_rating is not None and self.difficulty_handler is not None:
            self.difficulty_handler.on_difficulty_rating(word_id, difficulty_rating, progress)

        logger.debug(
            "Progress updated",
            user_id=str(self.user_id),
            word_id=word_id,
            correct=event.correct,
            mastery_level=progress.mastery_level,
            queued=stored.queued,
        )
        return UpdateResult(
            progress=progress,
            gamification=state,
            unlocked=list(unlocked),
            session=snapshot,
            queued=stored.queued,
            message=OFFLINE_MESSAGE if stored.queued else None,
        )

    def _project(
        self, event: ProgressEvent, session: SessionSnapshot | None
    ) -> tuple[WordProgress, GamificationState, List[AchievementDefinition]]:
        """Apply an event to the cache the way the store will apply it on replay."""

        current = self._progress.get(event.word_id)
        correct_count = (current.correct_count if current else 0) + int(event.correct)
        wrong_count = (current.wrong_count if current else 0) + int(not event.correct)
        last_practiced = event.occurred_at
        if current and current.last_practiced and current.last_practiced > last_practiced:
            last_practiced = current.last_practiced
        progress = self.scheduler.schedule(
            WordProgress(
                user_id=self.user_id,
                word_id=event.word_id,
                correct_count=correct_count,
                wrong_count=wrong_count,
                mastery_level=compute_mastery_level(correct_count, wrong_count),
                last_practiced=last_practiced,
            )
        )

        records = dict(self._progress)
        records[event.word_id] = progress
        stats = AchievementStats(
            total_reviews=sum(record.attempts for record in records.values()),
            total_correct=sum(record.correct_count for record in records.values()),
            mastered_words=sum(
                1 for record in records.values() if record.mastery_level >= MAX_MASTERY_LEVEL
            ),
            session_reviews=session.words_studied + 1 if session else 0,
        )
        outcome = self.engine.on_answer(
            self._gamification,
            correct=event.correct,
            now=event.occurred_at,
            stats=stats,
            unlocked=self._unlocked.keys(),
        )
        return progress, outcome.state, outcome.unlocked

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------
    def _persist_session_start(self, session: SessionSnapshot) -> None:
        self.store.open_session(session)

    def _persist_session_end(self, session: SessionSnapshot) -> None:
        self.store.close_session(session)

    def start_session(self, direction: str) -> tuple[SessionSnapshot, SessionSnapshot | None]:
        return self.tracker.start(direction)

    def end_session(self) -> SessionSnapshot | None:
        return self.tracker.end()

    def current_session(self) -> SessionSnapshot | None:
        return self.tracker.current()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_progress(self, word_id: int) -> WordProgress | None:
        with self._state_lock:
            return self._progress.get(word_id)

    def gamification_state(self) -> GamificationState:
        with self._state_lock:
            return self._gamification

    def unlocked_achievements(self) -> Dict[str, datetime | None]:
        with self._state_lock:
            return dict(self._unlocked)

    def get_stats(self) -> ProgressStats:
        """Aggregate the cached progress rows; has no side effects."""

        with self._state_lock:
            records = [record for record in self._progress.values() if record.attempts > 0]
            state = self._gamification

        total_attempts = sum(record.attempts for record in records)
        correct_answers = sum(record.correct_count for record in records)
        accuracy = round(correct_answers * 100 / total_attempts) if total_attempts else 0
        return ProgressStats(
            total_words_studied=len(records),
            total_attempts=total_attempts,
            correct_answers=correct_answers,
            accuracy=accuracy,
            current_streak=state.current_streak,
            longest_streak=state.longest_streak,
            mastered_words=sum(
                1 for record in records if record.mastery_level >= STATS_MASTERED_LEVEL
            ),
            words_in_progress=sum(
                1 for record in records if record.mastery_level in STATS_IN_PROGRESS_LEVELS
            ),
            total_xp=state.total_xp,
            level=state.level,
        )

    def get_due_words(self, candidate_ids: Iterable[int]) -> list[WordProgress]:
        """Filter ``candidate_ids`` down to due words, weakest first."""

        candidate_ids = list(candidate_ids)
        invalid = [word_id for word_id in candidate_ids if word_id < 1]
        if invalid:
            raise ValidationError("Word ids must be positive", {"word_ids": invalid})
        with self._state_lock:
            snapshot = dict(self._progress)
        return self.scheduler.due_words(
            candidate_ids, snapshot, user_id=self.user_id, now=self._clock()
        )

    def get_due_breakdown(self) -> DueWordsBreakdown:
        with self._state_lock:
            records = list(self._progress.values())
        return self.scheduler.breakdown(records, now=self._clock())

    # ------------------------------------------------------------------
    # Connectivity
    # ------------------------------------------------------------------
    @property
    def is_online(self) -> bool:
        return self.store.is_online

    def set_online(self, online: bool) -> None:
        self.store.set_online(online)

    def sync(self) -> ReplayReport:
        """Replay queued writes and reload the caches from the store."""

        report = self.store.sync()
        if report.remaining == 0 and self.store.is_online:
            self.load()
        return report


__all__ = ["DifficultyRatingHandler", "OFFLINE_MESSAGE", "ProgressFacade", "UpdateResult"]
