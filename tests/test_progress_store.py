"""Tests for persisting answers, sessions and the offline replay."""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from vocab_progress.db.models import (
    GamificationRecord,
    LearningSession,
    ReviewHistory,
    UserAchievement,
    UserProgress,
)
from vocab_progress.schemas import ProgressEvent
from vocab_progress.services.offline_queue import OfflineQueue
from vocab_progress.services.progress_store import ProgressStore
from vocab_progress.services.session_tracker import SessionSnapshot

T0 = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)


def answer(user_id, word_id: int, correct: bool, at: datetime = T0, **extra) -> ProgressEvent:
    return ProgressEvent(user_id=user_id, word_id=word_id, correct=correct, occurred_at=at, **extra)


def stored_row(remote_factory, user_id, word_id) -> UserProgress | None:
    with remote_factory() as db:
        return db.scalars(
            select(UserProgress)
            .where(UserProgress.user_id == user_id)
            .where(UserProgress.word_id == word_id)
        ).first()


def test_first_answer_creates_row(store, remote_factory, user_id):
    result = store.apply_event(answer(user_id, 11, True, response_time_ms=900))

    assert not result.queued
    assert result.progress.correct_count == 1
    assert result.progress.wrong_count == 0
    assert result.progress.mastery_level == 1
    assert result.progress.next_review_date == T0 + timedelta(days=1)

    row = stored_row(remote_factory, user_id, 11)
    assert (row.correct_count, row.wrong_count, row.mastery_level) == (1, 0, 1)

    with remote_factory() as db:
        history = db.scalars(select(ReviewHistory)).all()
    assert len(history) == 1
    assert (history[0].previous_level, history[0].new_level) == (0, 1)
    assert history[0].response_time_ms == 900


def test_increment_applies_on_top_of_stored_counters(store, remote_factory, user_id):
    # Another device already answered this word four times.
    with remote_factory() as db:
        db.add(
            UserProgress(
                user_id=user_id,
                word_id=3,
                correct_count=4,
                wrong_count=0,
                mastery_level=4,
                last_practiced=T0 - timedelta(days=2),
            )
        )
        db.commit()

    result = store.apply_event(answer(user_id, 3, True))
    assert result.progress.correct_count == 5
    assert result.progress.mastery_level == 5
    assert result.progress.next_review_date == T0 + timedelta(days=30)


def test_two_devices_do_not_lose_updates(store, remote_factory, local_factory, user_id):
    other_device = ProgressStore(
        remote_factory,
        OfflineQueue(local_factory, user_id=user_id),
        user_id=user_id,
        retry_attempts=1,
        retry_backoff=0,
    )
    store.apply_event(answer(user_id, 8, True))
    other_device.apply_event(answer(user_id, 8, False, T0 + timedelta(seconds=1)))
    store.apply_event(answer(user_id, 8, True, T0 + timedelta(seconds=2)))

    row = stored_row(remote_factory, user_id, 8)
    assert (row.correct_count, row.wrong_count) == (2, 1)
    assert row.mastery_level == 2


def test_last_practiced_never_moves_backwards(store, remote_factory, user_id):
    store.apply_event(answer(user_id, 4, True, T0))
    result = store.apply_event(answer(user_id, 4, True, T0 - timedelta(hours=5)))
    assert result.progress.last_practiced == T0


def test_gamification_state_and_achievements_are_persisted(store, remote_factory, user_id):
    result = store.apply_event(answer(user_id, 1, True))

    assert result.gamification.total_xp == 85
    assert [a.type for a in result.unlocked] == ["FIRST_WORD", "FIRST_CORRECT"]

    with remote_factory() as db:
        record = db.get(GamificationRecord, user_id)
        achievements = db.scalars(select(UserAchievement)).all()
    assert record.total_xp == 85
    assert record.level == 1
    assert record.current_streak == 1
    assert {a.achievement_type for a in achievements} == {"FIRST_WORD", "FIRST_CORRECT"}
    assert all(a.details == {"progress": 1} for a in achievements)

    second = store.apply_event(answer(user_id, 2, True, T0 + timedelta(minutes=1)))
    assert second.unlocked == []
    assert second.gamification.total_xp == 95

    state, unlocked = store.load_gamification()
    assert state.total_xp == 95
    assert set(unlocked) == {"FIRST_WORD", "FIRST_CORRECT"}


def test_load_progress_returns_scheduled_records(store, user_id):
    store.apply_event(answer(user_id, 1, True))
    store.apply_event(answer(user_id, 2, False))

    progress = store.load_progress()
    assert set(progress) == {1, 2}
    assert progress[2].wrong_count == 1
    assert progress[1].next_review_date == T0 + timedelta(days=1)


def test_transient_error_is_retried(queue, remote_factory, user_id):
    calls = []

    def factory():
        calls.append(1)
        if len(calls) == 1:
            raise OperationalError("SELECT 1", {}, ConnectionError("timeout"))
        return remote_factory()

    store = ProgressStore(factory, queue, user_id=user_id, retry_attempts=3, retry_backoff=0)
    result = store.apply_event(answer(user_id, 5, True))

    assert not result.queued
    assert len(calls) == 2
    assert queue.pending_count() == 0


def test_unreachable_store_queues_the_event(store, remote_factory, queue, user_id):
    remote_factory.online = False

    result = store.apply_event(answer(user_id, 5, True))

    assert result.queued
    assert result.progress is None
    assert not store.is_online
    assert remote_factory.failures == 2
    assert queue.pending_count() == 1
    assert queue.peek().payload["word_id"] == 5

    # Offline writes do not touch the network again.
    store.apply_event(answer(user_id, 6, True))
    assert remote_factory.failures == 2
    assert queue.pending_count() == 2


def test_new_writes_wait_behind_pending_entries(store, remote_factory, user_id):
    remote_factory.online = False
    store.apply_event(answer(user_id, 1, False, T0))
    remote_factory.online = True
    store.set_online(True)

    result = store.apply_event(answer(user_id, 2, True, T0 + timedelta(minutes=1)))

    assert not result.queued
    assert store.pending_count() == 0
    with remote_factory() as db:
        order = db.scalars(select(ReviewHistory.word_id).order_by(ReviewHistory.review_date)).all()
    assert order == [1, 2]


def test_replay_stops_at_first_failure_and_resumes(store, remote_factory, queue, user_id):
    remote_factory.online = False
    for offset, correct in enumerate([True, False, True]):
        store.apply_event(answer(user_id, 9, correct, T0 + timedelta(minutes=offset)))
    assert queue.pending_count() == 3

    remote_factory.online = True
    remote_factory.fail_after = 1
    report = store.sync()

    assert (report.applied, report.remaining) == (1, 2)
    assert not store.is_online
    first_seq = queue.cursor()
    assert first_seq > 0
    remote_factory.online = True
    row = stored_row(remote_factory, user_id, 9)
    assert (row.correct_count, row.wrong_count) == (1, 0)

    report = store.sync()

    assert (report.applied, report.remaining) == (2, 0)
    assert store.is_online
    row = stored_row(remote_factory, user_id, 9)
    assert (row.correct_count, row.wrong_count) == (2, 1)
    assert row.mastery_level == 2
    assert row.last_practiced.replace(tzinfo=timezone.utc) == T0 + timedelta(minutes=2)


def test_replay_after_crash_does_not_apply_entries_twice(
    store, remote_factory, queue, user_id, monkeypatch
):
    remote_factory.online = False
    for offset, correct in enumerate([True, True, False]):
        store.apply_event(answer(user_id, 7, correct, T0 + timedelta(minutes=offset)))
    remote_factory.online = True

    def crash(seq: int) -> None:
        raise RuntimeError("process killed")

    # The first entry is committed remotely but the cursor never moves.
    monkeypatch.setattr(queue, "advance", crash)
    with pytest.raises(RuntimeError):
        store.sync()
    monkeypatch.undo()
    assert queue.pending_count() == 3

    restarted = ProgressStore(
        remote_factory, queue, user_id=user_id, retry_attempts=2, retry_backoff=0
    )
    report = restarted.sync()

    assert (report.applied, report.remaining) == (3, 0)
    row = stored_row(remote_factory, user_id, 7)
    assert (row.correct_count, row.wrong_count) == (2, 1)
    assert row.mastery_level == 2
    with remote_factory() as db:
        history = db.scalar(select(func.count(ReviewHistory.id)))
        record = db.get(GamificationRecord, user_id)
    assert history == 3
    assert record.total_xp == 95


def test_applying_the_same_event_twice_is_a_no_op(store, remote_factory, user_id):
    event = answer(user_id, 3, True)
    first = store.apply_event(event)
    again = store.apply_event(event)

    assert again.progress.correct_count == first.progress.correct_count == 1
    assert again.gamification.total_xp == first.gamification.total_xp
    assert again.unlocked == []
    row = stored_row(remote_factory, user_id, 3)
    assert (row.correct_count, row.wrong_count) == (1, 0)


def test_sessions_are_inserted_then_updated(store, remote_factory, user_id):
    session = SessionSnapshot(id=uuid.uuid4(), user_id=user_id, direction="ru-it", started_at=T0)
    assert store.open_session(session) is False

    session.ended_at = T0 + timedelta(minutes=10)
    session.words_studied = 3
    session.correct_answers = 2
    assert store.close_session(session) is False

    with remote_factory() as db:
        row = db.get(LearningSession, session.id)
    assert row.learning_direction == "ru-it"
    assert (row.words_studied, row.correct_answers) == (3, 2)
    assert row.ended_at.replace(tzinfo=timezone.utc) == T0 + timedelta(minutes=10)


def test_offline_sessions_replay_in_order(store, remote_factory, user_id):
    remote_factory.online = False
    session = SessionSnapshot(id=uuid.uuid4(), user_id=user_id, direction="it-ru", started_at=T0)
    assert store.open_session(session) is True
    store.apply_event(answer(user_id, 2, True, T0 + timedelta(minutes=1), session_id=session.id))
    session.ended_at = T0 + timedelta(minutes=2)
    session.words_studied = 1
    session.correct_answers = 1
    assert store.close_session(session) is True

    remote_factory.online = True
    report = store.sync()

    assert (report.applied, report.remaining) == (3, 0)
    with remote_factory() as db:
        row = db.get(LearningSession, session.id)
        reviews = db.scalar(
            select(func.count(ReviewHistory.id)).where(ReviewHistory.session_id == session.id)
        )
    assert row.ended_at is not None
    assert row.words_studied == 1
    assert reviews == 1
