"""Pure progress rules: mastery, review scheduling and gamification."""

from vocab_progress.core.gamification import (
    ACHIEVEMENT_DEFINITIONS,
    AchievementDefinition,
    AchievementStats,
    GamificationEngine,
    GamificationState,
)
from vocab_progress.core.mastery import compute_mastery_level
from vocab_progress.core.records import DueWordsBreakdown, WordProgress
from vocab_progress.core.scheduler import DueCategory, ReviewScheduler

__all__ = [
    "ACHIEVEMENT_DEFINITIONS",
    "AchievementDefinition",
    "AchievementStats",
    "DueCategory",
    "DueWordsBreakdown",
    "GamificationEngine",
    "GamificationState",
    "ReviewScheduler",
    "WordProgress",
    "compute_mastery_level",
]
