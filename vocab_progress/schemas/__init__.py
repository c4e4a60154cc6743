"""Pydantic schemas package."""

from vocab_progress.schemas.achievement import (
    AchievementRead,
    GamificationStateRead,
    UserAchievementRead,
)
from vocab_progress.schemas.progress import (
    AnswerRequest,
    DueWordsBreakdownRead,
    DueWordsRequest,
    ProgressEvent,
    ProgressStats,
    SyncResponse,
    UpdateProgressResponse,
    WordProgressRead,
)
from vocab_progress.schemas.session import (
    LearningDirection,
    SessionSnapshotRead,
    SessionStartRequest,
    SessionStartResponse,
)

__all__ = [
    "AchievementRead",
    "AnswerRequest",
    "DueWordsBreakdownRead",
    "DueWordsRequest",
    "GamificationStateRead",
    "LearningDirection",
    "ProgressEvent",
    "ProgressStats",
    "SessionSnapshotRead",
    "SessionStartRequest",
    "SessionStartResponse",
    "SyncResponse",
    "UpdateProgressResponse",
    "UserAchievementRead",
    "WordProgressRead",
]
