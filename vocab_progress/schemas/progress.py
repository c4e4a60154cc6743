"""Pydantic models for progress events and progress endpoints."""
from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from vocab_progress.schemas.achievement import AchievementRead, GamificationStateRead
from vocab_progress.schemas.session import SessionSnapshotRead
from vocab_progress.utils.time import ensure_utc


class ProgressEvent(BaseModel):
    """A single answer; every durable mutation can be rebuilt from these."""

    model_config = ConfigDict(frozen=True)

    event_id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    word_id: int = Field(..., ge=1)
    correct: bool
    occurred_at: datetime
    session_id: UUID | None = None
    difficulty_rating: int | None = Field(
        None, ge=1, le=4, description="1=Again, 2=Hard, 3=Good, 4=Easy"
    )
    response_time_ms: int | None = Field(None, ge=0)

    @field_validator("occurred_at")
    @classmethod
    def _normalise_timezone(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class AnswerRequest(BaseModel):
    """Payload for submitting an answer."""

    word_id: int = Field(..., ge=1)
    correct: bool
    difficulty_rating: int | None = Field(None, ge=1, le=4)
    response_time_ms: int | None = Field(None, ge=0)


class WordProgressRead(BaseModel):
    """Progress of one word, including its derived review date."""

    model_config = ConfigDict(from_attributes=True)

    word_id: int
    correct_count: int
    wrong_count: int
    mastery_level: int
    last_practiced: datetime | None = None
    next_review_date: datetime | None = None


class UpdateProgressResponse(BaseModel):
    """Result of an answer submission."""

    progress: WordProgressRead
    unlocked: list[AchievementRead] = Field(default_factory=list)
    session: SessionSnapshotRead | None = None
    gamification: GamificationStateRead
    queued: bool = False
    message: str | None = None


class DueWordsRequest(BaseModel):
    """Candidate word ids to filter down to due words."""

    candidate_ids: list[int] = Field(default_factory=list)


class DueWordsBreakdownRead(BaseModel):
    """Due words grouped by urgency."""

    overdue: list[WordProgressRead] = Field(default_factory=list)
    due_today: list[WordProgressRead] = Field(default_factory=list)
    due_soon: list[WordProgressRead] = Field(default_factory=list)
    total: int = 0


class ProgressStats(BaseModel):
    """Aggregated statistics over all practiced words."""

    total_words_studied: int
    total_attempts: int
    correct_answers: int
    accuracy: int = Field(..., ge=0, le=100, description="Rounded percentage")
    current_streak: int
    longest_streak: int
    mastered_words: int
    words_in_progress: int
    total_xp: int
    level: int


class SyncResponse(BaseModel):
    """Outcome of replaying the offline queue."""

    applied: int
    remaining: int
    online: bool
