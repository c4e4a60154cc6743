"""Tests for XP, streaks and achievement unlocks."""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from vocab_progress.core.gamification import (
    ACHIEVEMENT_DEFINITIONS,
    AchievementStats,
    GamificationEngine,
    GamificationState,
    level_from_xp,
    xp_for_level,
    xp_progress,
)

DAY_ONE = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def engine() -> GamificationEngine:
    return GamificationEngine()


def test_level_derivation():
    assert level_from_xp(0) == 1
    assert level_from_xp(99) == 1
    assert level_from_xp(100) == 2
    assert level_from_xp(950) == 10
    assert xp_for_level(1) == 0
    assert xp_for_level(10) == 900
    assert xp_progress(150) == pytest.approx(0.5)


def test_first_answer_initialises_missing_state(engine):
    outcome = engine.on_answer(
        None,
        correct=True,
        now=DAY_ONE,
        stats=AchievementStats(total_reviews=1, total_correct=1),
    )
    assert [a.type for a in outcome.unlocked] == ["FIRST_WORD", "FIRST_CORRECT"]
    assert outcome.state.total_xp == 10 + 50 + 25
    assert outcome.xp_earned == 85
    assert outcome.state.current_streak == 1
    assert outcome.state.longest_streak == 1
    assert outcome.state.last_activity_date == date(2024, 3, 4)
    assert outcome.state.level == 1


def test_wrong_answer_earns_no_xp_and_resets_run(engine):
    state = GamificationState(total_xp=40, consecutive_correct=7)
    outcome = engine.on_answer(state, correct=False, now=DAY_ONE)
    assert outcome.state.total_xp == 40
    assert outcome.state.consecutive_correct == 0


def test_streak_across_days():
    engine = GamificationEngine()
    state = engine.on_answer(None, correct=True, now=DAY_ONE).state
    state = engine.on_answer(state, correct=True, now=DAY_ONE + timedelta(hours=3)).state
    assert state.current_streak == 1

    state = engine.on_answer(state, correct=True, now=DAY_ONE + timedelta(days=1)).state
    assert state.current_streak == 2

    state = engine.on_answer(state, correct=False, now=DAY_ONE + timedelta(days=3)).state
    assert state.current_streak == 1
    assert state.longest_streak == 2


def test_late_activity_does_not_rewind_streak(engine):
    state = GamificationState(
        current_streak=4, longest_streak=4, last_activity_date=date(2024, 3, 8)
    )
    updated = engine.update_streak(state, DAY_ONE)
    assert updated.current_streak == 4
    assert updated.last_activity_date == date(2024, 3, 8)


def test_longest_streak_never_below_current(engine):
    state = None
    now = DAY_ONE
    for gap in [0, 1, 1, 0, 2, 1, 1, 1, 5, 1, 0, 1]:
        now += timedelta(days=gap)
        outcome = engine.on_answer(state, correct=gap % 2 == 0, now=now)
        state = outcome.state
        assert state.longest_streak >= state.current_streak


def test_streak_achievement_unlocks_once(engine):
    state = None
    unlocked: set[str] = set()
    granted = []
    for day in range(4):
        outcome = engine.on_answer(
            state, correct=True, now=DAY_ONE + timedelta(days=day), unlocked=unlocked
        )
        state = outcome.state
        unlocked.update(a.type for a in outcome.unlocked)
        granted.extend(a.type for a in outcome.unlocked)
    assert granted.count("STREAK_3") == 1
    assert state.total_xp == 4 * 10 + ACHIEVEMENT_DEFINITIONS["STREAK_3"].xp_reward


def test_unlock_reward_can_unlock_further_achievements(engine):
    state = GamificationState(total_xp=840)
    outcome = engine.on_answer(
        state, correct=True, now=DAY_ONE, stats=AchievementStats(total_reviews=1)
    )
    assert [a.type for a in outcome.unlocked] == ["FIRST_WORD", "CHAMPION"]
    assert outcome.state.total_xp == 850 + 50 + 1000
    assert outcome.xp_earned == 10 + 50 + 1000


def test_perfectionist_after_fifty_in_a_row(engine):
    state = GamificationState(consecutive_correct=49, last_activity_date=date(2024, 3, 4))
    outcome = engine.on_answer(state, correct=True, now=DAY_ONE)
    assert "PERFECTIONIST" in [a.type for a in outcome.unlocked]


def test_mastery_achievements_count_level_five_words(engine):
    stats = AchievementStats(total_reviews=60, total_correct=60, mastered_words=10)
    outcome = engine.on_answer(
        None, correct=True, now=DAY_ONE, stats=stats, unlocked={"FIRST_WORD", "FIRST_CORRECT"}
    )
    assert [a.type for a in outcome.unlocked] == ["MASTER_10"]


def test_time_of_day_achievements_use_local_hour():
    early = GamificationEngine().on_answer(
        None, correct=True, now=datetime(2024, 3, 4, 6, 30, tzinfo=timezone.utc)
    )
    assert [a.type for a in early.unlocked] == ["EARLY_BIRD"]

    rome = GamificationEngine(tz_name="Europe/Rome")
    late = rome.on_answer(
        None, correct=True, now=datetime(2024, 3, 4, 21, 30, tzinfo=timezone.utc)
    )
    assert [a.type for a in late.unlocked] == ["NIGHT_OWL"]
