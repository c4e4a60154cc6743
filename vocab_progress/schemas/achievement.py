"""Pydantic schemas for achievements and gamification state."""
from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

from vocab_progress.core.gamification import (
    AchievementDefinition,
    GamificationState,
    xp_progress,
)


class AchievementRead(BaseModel):
    """Achievement definition schema."""

    type: str
    name: str
    description: str
    category: str
    xp_reward: int
    icon: str

    @classmethod
    def from_definition(cls, definition: AchievementDefinition) -> "AchievementRead":
        return cls(
            type=definition.type,
            name=definition.name,
            description=definition.description,
            category=definition.category,
            xp_reward=definition.xp_reward,
            icon=definition.icon,
        )


class UserAchievementRead(BaseModel):
    """An achievement the learner has unlocked."""

    achievement_type: str
    name: str
    unlocked_at: datetime | None = None
    xp_reward: int


class GamificationStateRead(BaseModel):
    """XP, level and streak summary."""

    total_xp: int
    level: int
    xp_progress: float = Field(..., ge=0.0, le=1.0)
    current_streak: int
    longest_streak: int
    last_activity_date: date | None = None

    @classmethod
    def from_state(cls, state: GamificationState) -> "GamificationStateRead":
        return cls(
            total_xp=state.total_xp,
            level=state.level,
            xp_progress=xp_progress(state.total_xp),
            current_streak=state.current_streak,
            longest_streak=state.longest_streak,
            last_activity_date=state.last_activity_date,
        )


__all__ = [
    "AchievementRead",
    "GamificationStateRead",
    "UserAchievementRead",
]
