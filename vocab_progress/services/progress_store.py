"""Persistence of answers, sessions and gamification state.

Every answer is written as an atomic increment at the storage layer: the
``user_progress`` row is upserted with ``correct_count = correct_count + 1``
(or ``wrong_count``) and the stored counters are read back with
``RETURNING``, so two devices answering the same word never lose an update.
The mastery level is then recomputed from the returned counters inside the
same transaction.

When the remote store cannot be reached the write is appended to the
durable :class:`OfflineQueue` instead, and :meth:`ProgressStore.replay`
applies the queued writes later, strictly in their original order and with
exactly the same write path as a live write. Replay is idempotent: answers
are keyed by their ``event_id`` in ``review_history`` and session writes
store absolute values, so an entry applied before a crash but not yet
confirmed in the queue is not counted twice.
"""
from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Dict, List, TypeVar

from loguru import logger
from sqlalchemy import case, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.orm import Session
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from vocab_progress.core.gamification import (
    AchievementDefinition,
    AchievementStats,
    GamificationEngine,
    GamificationState,
)
from vocab_progress.core.mastery import MAX_MASTERY_LEVEL, compute_mastery_level
from vocab_progress.core.records import WordProgress
from vocab_progress.core.scheduler import ReviewScheduler
from vocab_progress.db.models.gamification import GamificationRecord, UserAchievement
from vocab_progress.db.models.progress import ReviewHistory, UserProgress
from vocab_progress.db.models.session import LearningSession
from vocab_progress.schemas.progress import ProgressEvent
from vocab_progress.services.offline_queue import OfflineQueue
from vocab_progress.services.session_tracker import SessionSnapshot
from vocab_progress.utils.exceptions import OfflineUnavailable, TransientStorageError
from vocab_progress.utils.time import ensure_utc

T = TypeVar("T")

RETRYABLE_ERRORS = (OperationalError, InterfaceError, DisconnectionError)


@dataclass(slots=True)
class StoreResult:
    """Outcome of an answer write; ``queued`` results carry no stored state."""

    queued: bool
    progress: WordProgress | None = None
    gamification: GamificationState | None = None
    unlocked: List[AchievementDefinition] = field(default_factory=list)


@dataclass(slots=True)
class ReplayReport:
    applied: int
    remaining: int


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Atomic progress upserts are not supported on {dialect}")


def _session_payload(session: SessionSnapshot) -> dict[str, Any]:
    return {
        "id": str(session.id),
        "user_id": str(session.user_id),
        "direction": session.direction,
        "started_at": session.started_at.isoformat(),
        "ended_at": session.ended_at.isoformat() if session.ended_at else None,
        "words_studied": session.words_studied,
        "correct_answers": session.correct_answers,
    }


def _session_from_payload(payload: dict[str, Any]) -> SessionSnapshot:
    ended_at = payload.get("ended_at")
    return SessionSnapshot(
        id=uuid.UUID(payload["id"]),
        user_id=uuid.UUID(payload["user_id"]),
        direction=payload["direction"],
        started_at=ensure_utc(datetime.fromisoformat(payload["started_at"])),
        ended_at=ensure_utc(datetime.fromisoformat(ended_at)) if ended_at else None,
        words_studied=payload.get("words_studied", 0),
        correct_answers=payload.get("correct_answers", 0),
    )


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Progress store unreachable, retrying",
        attempt=retry_state.attempt_number,
        error=str(exc),
    )


class ProgressStore:
    """Read and write one learner's progress, falling back to the offline queue."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        queue: OfflineQueue,
        *,
        user_id: uuid.UUID,
        scheduler: ReviewScheduler | None = None,
        engine: GamificationEngine | None = None,
        retry_attempts: int = 3,
        retry_backoff: float = 0.5,
        retry_max_wait: float = 8.0,
    ) -> None:
        self._session_factory = session_factory
        self.queue = queue
        self.user_id = user_id
        self.scheduler = scheduler or ReviewScheduler()
        self.engine = engine or GamificationEngine()
        self.retry_attempts = retry_attempts
        self.retry_backoff = retry_backoff
        self.retry_max_wait = retry_max_wait
        self._online = True
        # Orders live writes behind queued ones; replay holds it too.
        self._write_lock = threading.RLock()
        self._replay_handlers: Dict[str, Callable[[Session, dict[str, Any]], Any]] = {
            "progress": lambda db, payload: self._write_answer(
                db, ProgressEvent.model_validate(payload)
            ),
            "session_start": lambda db, payload: self._write_session_start(
                db, _session_from_payload(payload)
            ),
            "session_end": lambda db, payload: self._write_session_end(
                db, _session_from_payload(payload)
            ),
        }

    # ------------------------------------------------------------------
    # Connectivity
    # ------------------------------------------------------------------
    @property
    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        if online != self._online:
            logger.info(
                "Progress store connectivity changed",
                user_id=str(self.user_id),
                online=online,
            )
        self._online = online

    def pending_count(self) -> int:
        return self.queue.pending_count()

    def _go_offline(self, error: Exception) -> None:
        if self._online:
            logger.warning(
                "Progress store offline, saving progress locally",
                user_id=str(self.user_id),
                error=str(error),
            )
        self._online = False

    # ------------------------------------------------------------------
    # Transaction helpers
    # ------------------------------------------------------------------
    def _transaction(self, operation: Callable[[Session], T]) -> T:
        try:
            db = self._session_factory()
        except RETRYABLE_ERRORS as exc:
            raise TransientStorageError(str(exc)) from exc
        try:
            result = operation(db)
            db.commit()
            return result
        except RETRYABLE_ERRORS as exc:
            db.rollback()
            raise TransientStorageError(str(exc), {"user_id": str(self.user_id)}) from exc
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def _run(self, operation: Callable[[Session], T]) -> T:
        """Run ``operation`` in a transaction, retrying transient failures."""

        retrying = Retrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=self.retry_backoff, max=self.retry_max_wait),
            retry=retry_if_exception_type(TransientStorageError),
            before_sleep=_log_retry,
            reraise=True,
        )
        return retrying(self._transaction, operation)

    def _submit(
        self, kind: str, payload: dict[str, Any], operation: Callable[[Session], T]
    ) -> tuple[T | None, bool]:
        """Write now when possible, otherwise queue; returns (result, queued)."""

        with self._write_lock:
            if self._online and self.queue.pending_count():
                self._replay_locked()
            try:
                if not self._online:
                    raise OfflineUnavailable("Progress store is offline")
                if self.queue.pending_count():
                    raise OfflineUnavailable("Earlier writes are still queued")
                return self._run(operation), False
            except TransientStorageError as exc:
                self._go_offline(exc)
            except OfflineUnavailable as exc:
                logger.debug(
                    "Queueing write", user_id=str(self.user_id), kind=kind, reason=exc.message
                )
            self.queue.append(kind, payload)
            return None, True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def load_progress(self) -> dict[int, WordProgress]:
        """Return every progress record of the user keyed by word id."""

        def _load(db: Session) -> dict[int, WordProgress]:
            rows = db.scalars(select(UserProgress).where(UserProgress.user_id == self.user_id))
            return {row.word_id: self.scheduler.schedule(row.to_record()) for row in rows}

        return self._run(_load)

    def load_gamification(self) -> tuple[GamificationState, dict[str, datetime | None]]:
        """Return the stored gamification state and unlocked achievement types."""

        def _load(db: Session) -> tuple[GamificationState, dict[str, datetime | None]]:
            record = db.get(GamificationRecord, self.user_id)
            state = record.to_state() if record else GamificationState()
            unlocked = {
                row.achievement_type: ensure_utc(row.unlocked_at)
                for row in db.scalars(
                    select(UserAchievement).where(UserAchievement.user_id == self.user_id)
                )
            }
            return state, unlocked

        return self._run(_load)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def apply_event(self, event: ProgressEvent) -> StoreResult:
        """Persist an answer, or queue it when the store is unreachable."""

        result, queued = self._submit(
            "progress", event.model_dump(mode="json"), lambda db: self._write_answer(db, event)
        )
        if queued:
            return StoreResult(queued=True)
        return result

    def open_session(self, session: SessionSnapshot) -> bool:
        """Insert a new session row; returns ``True`` when it was queued."""

        _, queued = self._submit(
            "session_start",
            _session_payload(session),
            lambda db: self._write_session_start(db, session),
        )
        return queued

    def close_session(self, session: SessionSnapshot) -> bool:
        """Write the final counters of a session; returns ``True`` when queued."""

        _, queued = self._submit(
            "session_end",
            _session_payload(session),
            lambda db: self._write_session_end(db, session),
        )
        return queued

    def _write_answer(self, db: Session, event: ProgressEvent) -> StoreResult:
        applied = db.scalar(
            select(ReviewHistory.id).where(ReviewHistory.event_id == event.event_id)
        )
        if applied is not None:
            logger.info(
                "Skipping already applied answer",
                user_id=str(event.user_id),
                event_id=str(event.event_id),
            )
            return self._stored_result(db, event)

        insert = _insert_for(db)
        stmt = insert(UserProgress).values(
            id=uuid.uuid4(),
            user_id=event.user_id,
            word_id=event.word_id,
            correct_count=1 if event.correct else 0,
            wrong_count=0 if event.correct else 1,
            mastery_level=0,
            last_practiced=event.occurred_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "word_id"],
            set_={
                "correct_count": UserProgress.correct_count + stmt.excluded.correct_count,
                "wrong_count": UserProgress.wrong_count + stmt.excluded.wrong_count,
                "last_practiced": case(
                    (
                        UserProgress.last_practiced > stmt.excluded.last_practiced,
                        UserProgress.last_practiced,
                    ),
                    else_=stmt.excluded.last_practiced,
                ),
                "updated_at": func.now(),
            },
        ).returning(
            UserProgress.id,
            UserProgress.correct_count,
            UserProgress.wrong_count,
            UserProgress.mastery_level,
            UserProgress.last_practiced,
        )
        row = db.execute(stmt).one()

        previous_level = row.mastery_level or 0
        new_level = compute_mastery_level(row.correct_count, row.wrong_count)
        if new_level != previous_level:
            db.execute(
                update(UserProgress)
                .where(UserProgress.id == row.id)
                .values(mastery_level=new_level)
            )

        db.add(
            ReviewHistory(
                user_id=event.user_id,
                word_id=event.word_id,
                session_id=event.session_id,
                event_id=event.event_id,
                review_date=event.occurred_at,
                correct=event.correct,
                response_time_ms=event.response_time_ms,
                difficulty_rating=event.difficulty_rating,
                previous_level=previous_level,
                new_level=new_level,
            )
        )
        db.flush()

        progress = self.scheduler.schedule(
            WordProgress(
                user_id=event.user_id,
                word_id=event.word_id,
                correct_count=row.correct_count,
                wrong_count=row.wrong_count,
                mastery_level=new_level,
                last_practiced=ensure_utc(row.last_practiced),
            )
        )
        state, unlocked = self._score_answer(db, event)
        return StoreResult(queued=False, progress=progress, gamification=state, unlocked=unlocked)

    def _stored_result(self, db: Session, event: ProgressEvent) -> StoreResult:
        """Return the stored state of an event that was applied before."""

        row = db.scalars(
            select(UserProgress)
            .where(UserProgress.user_id == event.user_id)
            .where(UserProgress.word_id == event.word_id)
        ).one()
        record = db.get(GamificationRecord, event.user_id)
        return StoreResult(
            queued=False,
            progress=self.scheduler.schedule(row.to_record()),
            gamification=record.to_state() if record else GamificationState(),
        )

    def _collect_stats(self, db: Session, event: ProgressEvent) -> AchievementStats:
        correct, wrong = db.execute(
            select(
                func.coalesce(func.sum(UserProgress.correct_count), 0),
                func.coalesce(func.sum(UserProgress.wrong_count), 0),
            ).where(UserProgress.user_id == event.user_id)
        ).one()
        mastered = db.scalar(
            select(func.count(UserProgress.id))
            .where(UserProgress.user_id == event.user_id)
            .where(UserProgress.mastery_level >= MAX_MASTERY_LEVEL)
        )
        session_reviews = 0
        if event.session_id is not None:
            session_reviews = db.scalar(
                select(func.count(ReviewHistory.id)).where(
                    ReviewHistory.session_id == event.session_id
                )
            )
        return AchievementStats(
            total_reviews=int(correct) + int(wrong),
            total_correct=int(correct),
            mastered_words=mastered or 0,
            session_reviews=session_reviews or 0,
        )

    def _score_answer(
        self, db: Session, event: ProgressEvent
    ) -> tuple[GamificationState, List[AchievementDefinition]]:
        record = db.scalars(
            select(GamificationRecord)
            .where(GamificationRecord.user_id == event.user_id)
            .with_for_update()
        ).first()
        if record is None:
            record = GamificationRecord(
                user_id=event.user_id,
                total_xp=0,
                level=1,
                current_streak=0,
                longest_streak=0,
                consecutive_correct=0,
            )
            db.add(record)

        unlocked_types = set(
            db.scalars(
                select(UserAchievement.achievement_type).where(
                    UserAchievement.user_id == event.user_id
                )
            )
        )
        stats = self._collect_stats(db, event)
        outcome = self.engine.on_answer(
            record.to_state(),
            correct=event.correct,
            now=event.occurred_at,
            stats=stats,
            unlocked=unlocked_types,
        )
        record.apply_state(outcome.state)

        final_stats = replace(stats, state=outcome.state, local_hour=self.engine.local_hour(event.occurred_at))
        for definition in outcome.unlocked:
            db.add(
                UserAchievement(
                    user_id=event.user_id,
                    achievement_type=definition.type,
                    unlocked_at=event.occurred_at,
                    details={"progress": definition.progress(final_stats)},
                )
            )
        if outcome.unlocked:
            logger.info(
                "Achievements unlocked",
                user_id=str(event.user_id),
                achievements=[definition.type for definition in outcome.unlocked],
            )
        return outcome.state, outcome.unlocked

    def _write_session_start(self, db: Session, session: SessionSnapshot) -> None:
        if db.get(LearningSession, session.id) is not None:
            return
        db.add(
            LearningSession(
                id=session.id,
                user_id=session.user_id,
                started_at=session.started_at,
                ended_at=session.ended_at,
                words_studied=session.words_studied,
                correct_answers=session.correct_answers,
                learning_direction=session.direction,
            )
        )

    def _write_session_end(self, db: Session, session: SessionSnapshot) -> None:
        row = db.get(LearningSession, session.id)
        if row is None:
            self._write_session_start(db, session)
            return
        row.ended_at = session.ended_at
        row.words_studied = session.words_studied
        row.correct_answers = session.correct_answers

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------
    def replay(self) -> ReplayReport:
        """Apply queued writes in order until the queue is empty or a write fails."""

        with self._write_lock:
            return self._replay_locked()

    def _replay_locked(self) -> ReplayReport:
        applied = 0
        for operation in self.queue.pending():
            handler = self._replay_handlers[operation.kind]
            try:
                self._run(lambda db: handler(db, operation.payload))
            except TransientStorageError as exc:
                self._go_offline(exc)
                break
            self.queue.advance(operation.seq)
            applied += 1

        remaining = self.queue.pending_count()
        if applied and remaining == 0:
            self.queue.compact()
        if applied or remaining:
            logger.info(
                "Offline queue replayed",
                user_id=str(self.user_id),
                applied=applied,
                remaining=remaining,
            )
        return ReplayReport(applied=applied, remaining=remaining)

    def sync(self) -> ReplayReport:
        """Treat connectivity as restored and drain the offline queue."""

        self.set_online(True)
        return self.replay()


__all__ = ["ProgressStore", "ReplayReport", "StoreResult", "RETRYABLE_ERRORS"]
