"""Database models package."""
from vocab_progress.db.models.gamification import GamificationRecord, UserAchievement
from vocab_progress.db.models.offline_queue import OfflineQueueCursor, OfflineQueueEntry
from vocab_progress.db.models.progress import ReviewHistory, UserProgress
from vocab_progress.db.models.session import LEARNING_DIRECTIONS, LearningSession

__all__ = [
    "GamificationRecord",
    "LEARNING_DIRECTIONS",
    "LearningSession",
    "OfflineQueueCursor",
    "OfflineQueueEntry",
    "ReviewHistory",
    "UserAchievement",
    "UserProgress",
]
