"""XP, levels, daily streaks and achievement unlocks.

The engine is a pure function of its inputs: it receives the learner's
current :class:`GamificationState` together with a snapshot of cumulative
statistics and returns the next state plus any achievements that unlocked.
Nothing is read from or written to storage here, which keeps the rules
deterministic and trivially testable.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Callable, Collection, Dict, List, Literal

from vocab_progress.utils.time import ensure_utc, get_zone, local_date

XP_PER_LEVEL = 100

AchievementCategory = Literal["first", "streak", "mastery", "session", "accuracy", "time", "volume", "level"]


def level_from_xp(total_xp: int) -> int:
    """Return the learner level for a total XP amount."""

    return max(0, total_xp) // XP_PER_LEVEL + 1


def xp_for_level(level: int) -> int:
    """Return the total XP at which ``level`` is reached."""

    return max(0, level - 1) * XP_PER_LEVEL


def xp_progress(total_xp: int) -> float:
    """Return progress towards the next level as a value between 0 and 1."""

    level = level_from_xp(total_xp)
    floor = xp_for_level(level)
    return min(max((total_xp - floor) / XP_PER_LEVEL, 0.0), 1.0)


@dataclass(frozen=True)
class GamificationState:
    """Per-user XP and streak record."""

    total_xp: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: date | None = None
    consecutive_correct: int = 0

    @property
    def level(self) -> int:
        return level_from_xp(self.total_xp)


@dataclass(frozen=True)
class AchievementStats:
    """Cumulative figures an achievement predicate may look at.

    ``state`` is the gamification state after the current answer was scored
    and is refreshed whenever an unlock grants XP.
    """

    total_reviews: int = 0
    total_correct: int = 0
    mastered_words: int = 0
    session_reviews: int = 0
    local_hour: int = 12
    state: GamificationState = field(default_factory=GamificationState)


@dataclass(frozen=True)
class AchievementDefinition:
    """Template for an unlockable achievement."""

    type: str
    name: str
    description: str
    category: AchievementCategory
    xp_reward: int
    icon: str
    predicate: Callable[[AchievementStats], bool]
    progress: Callable[[AchievementStats], int]


def _threshold(
    type_: str,
    name: str,
    description: str,
    category: AchievementCategory,
    xp_reward: int,
    icon: str,
    metric: Callable[[AchievementStats], int],
    target: int,
) -> AchievementDefinition:
    return AchievementDefinition(
        type=type_,
        name=name,
        description=description,
        category=category,
        xp_reward=xp_reward,
        icon=icon,
        predicate=lambda stats: metric(stats) >= target,
        progress=metric,
    )


def _streak(stats: AchievementStats) -> int:
    return stats.state.current_streak


def _mastered(stats: AchievementStats) -> int:
    return stats.mastered_words


ACHIEVEMENT_DEFINITIONS: Dict[str, AchievementDefinition] = {
    definition.type: definition
    for definition in (
        _threshold("FIRST_WORD", "First Steps", "Study your first word", "first", 50, "🌱",
                   lambda s: s.total_reviews, 1),
        _threshold("FIRST_CORRECT", "Off the Mark", "Answer a word correctly", "first", 25, "✅",
                   lambda s: s.total_correct, 1),
        _threshold("STREAK_3", "Getting Started", "Maintain a 3-day streak", "streak", 100, "🔥",
                   _streak, 3),
        _threshold("STREAK_7", "Week Warrior", "Maintain a 7-day streak", "streak", 200, "⚡",
                   _streak, 7),
        _threshold("STREAK_30", "Month Master", "Maintain a 30-day streak", "streak", 500, "💪",
                   _streak, 30),
        _threshold("STREAK_100", "Legendary", "Maintain a 100-day streak", "streak", 2000, "👑",
                   _streak, 100),
        _threshold("MASTER_10", "Novice", "Bring 10 words to mastery level 5", "mastery", 100, "📚",
                   _mastered, 10),
        _threshold("MASTER_50", "Scholar", "Bring 50 words to mastery level 5", "mastery", 300, "🎓",
                   _mastered, 50),
        _threshold("MASTER_100", "Expert", "Bring 100 words to mastery level 5", "mastery", 500, "🏆",
                   _mastered, 100),
        _threshold("MASTER_500", "Grand Master", "Bring 500 words to mastery level 5", "mastery", 2000,
                   "💎", _mastered, 500),
        _threshold("SPEED_DEMON", "Speed Demon", "Complete 100 reviews in one session", "session", 300,
                   "⚡", lambda s: s.session_reviews, 100),
        _threshold("PERFECTIONIST", "Perfectionist", "Get 50 correct answers in a row", "accuracy", 500,
                   "✨", lambda s: s.state.consecutive_correct, 50),
        AchievementDefinition(
            type="EARLY_BIRD",
            name="Early Bird",
            description="Practice before 8 AM",
            category="time",
            xp_reward=50,
            icon="🌅",
            predicate=lambda s: s.local_hour < 8,
            progress=lambda s: int(s.local_hour < 8),
        ),
        AchievementDefinition(
            type="NIGHT_OWL",
            name="Night Owl",
            description="Practice after 10 PM",
            category="time",
            xp_reward=50,
            icon="🦉",
            predicate=lambda s: s.local_hour >= 22,
            progress=lambda s: int(s.local_hour >= 22),
        ),
        _threshold("DEDICATED", "Dedicated", "Complete 1000 total reviews", "volume", 1000, "💯",
                   lambda s: s.total_reviews, 1000),
        _threshold("CHAMPION", "Champion", "Reach level 10", "level", 1000, "👑",
                   lambda s: s.state.level, 10),
    )
}


@dataclass(frozen=True)
class AnswerOutcome:
    """Result of scoring one answer."""

    state: GamificationState
    unlocked: List[AchievementDefinition]
    xp_earned: int


class GamificationEngine:
    """Score answers and decide achievement unlocks."""

    def __init__(
        self,
        *,
        xp_correct: int = 10,
        xp_wrong: int = 0,
        tz_name: str = "UTC",
        definitions: Dict[str, AchievementDefinition] | None = None,
    ) -> None:
        self.xp_correct = xp_correct
        self.xp_wrong = xp_wrong
        self.tz_name = tz_name
        self.definitions = definitions if definitions is not None else ACHIEVEMENT_DEFINITIONS

    @classmethod
    def from_settings(cls, settings) -> "GamificationEngine":
        return cls(
            xp_correct=settings.XP_CORRECT_ANSWER,
            xp_wrong=settings.XP_WRONG_ANSWER,
            tz_name=settings.TIMEZONE,
        )

    def local_hour(self, now: datetime) -> int:
        return ensure_utc(now).astimezone(get_zone(self.tz_name)).hour

    def update_streak(self, state: GamificationState, now: datetime) -> GamificationState:
        """Advance the daily streak for activity at ``now``."""

        today = local_date(now, self.tz_name)
        last = state.last_activity_date
        if last is not None and last > today:
            # Late (replayed) activity never rewinds the streak.
            streak, today = state.current_streak, last
        elif last == today:
            streak = max(state.current_streak, 1)
        elif last is not None and (today - last).days == 1:
            streak = state.current_streak + 1
        else:
            streak = 1
        return replace(
            state,
            current_streak=streak,
            longest_streak=max(state.longest_streak, streak),
            last_activity_date=today,
        )

    def on_answer(
        self,
        state: GamificationState | None,
        *,
        correct: bool,
        now: datetime,
        stats: AchievementStats | None = None,
        unlocked: Collection[str] = (),
    ) -> AnswerOutcome:
        """Score one answer and evaluate every achievement not yet unlocked."""

        state = state or GamificationState()
        xp = self.xp_correct if correct else self.xp_wrong
        state = self.update_streak(state, now)
        state = replace(
            state,
            total_xp=state.total_xp + xp,
            consecutive_correct=state.consecutive_correct + 1 if correct else 0,
        )

        stats = replace(stats or AchievementStats(), state=state, local_hour=self.local_hour(now))
        state, newly_unlocked = self.evaluate(stats, unlocked)
        bonus = sum(definition.xp_reward for definition in newly_unlocked)
        return AnswerOutcome(state=state, unlocked=newly_unlocked, xp_earned=xp + bonus)

    def evaluate(
        self, stats: AchievementStats, unlocked: Collection[str] = ()
    ) -> tuple[GamificationState, List[AchievementDefinition]]:
        """Unlock every satisfied achievement, repeating while rewards add XP."""

        already = set(unlocked)
        state = stats.state
        newly_unlocked: List[AchievementDefinition] = []
        changed = True
        while changed:
            changed = False
            for definition in self.definitions.values():
                if definition.type in already:
                    continue
                if not definition.predicate(stats):
                    continue
                already.add(definition.type)
                newly_unlocked.append(definition)
                state = replace(state, total_xp=state.total_xp + definition.xp_reward)
                stats = replace(stats, state=state)
                changed = True
        return state, newly_unlocked


__all__ = [
    "ACHIEVEMENT_DEFINITIONS",
    "AchievementDefinition",
    "AchievementStats",
    "AnswerOutcome",
    "GamificationEngine",
    "GamificationState",
    "XP_PER_LEVEL",
    "level_from_xp",
    "xp_for_level",
    "xp_progress",
]
