"""Gamification state and unlocked achievement models."""
import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from vocab_progress.core.gamification import GamificationState
from vocab_progress.db.base import Base


class GamificationRecord(Base):
    """XP, level and streak bookkeeping, one row per learner."""

    __tablename__ = "gamification_state"
    __table_args__ = (
        CheckConstraint("total_xp >= 0", name="ck_gamification_total_xp"),
        CheckConstraint("level > 0", name="ck_gamification_level"),
        CheckConstraint("current_streak >= 0", name="ck_gamification_current_streak"),
        CheckConstraint("longest_streak >= current_streak", name="ck_gamification_longest_streak"),
    )

    user_id = Column(UUID(as_uuid=True), primary_key=True)
    total_xp = Column(Integer, nullable=False, default=0)
    level = Column(Integer, nullable=False, default=1)
    current_streak = Column(Integer, nullable=False, default=0)
    longest_streak = Column(Integer, nullable=False, default=0)
    consecutive_correct = Column(Integer, nullable=False, default=0)
    last_activity_date = Column(Date, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def to_state(self) -> GamificationState:
        return GamificationState(
            total_xp=self.total_xp or 0,
            current_streak=self.current_streak or 0,
            longest_streak=self.longest_streak or 0,
            last_activity_date=self.last_activity_date,
            consecutive_correct=self.consecutive_correct or 0,
        )

    def apply_state(self, state: GamificationState) -> None:
        """Copy an engine state onto the row; the level is always re-derived."""

        self.total_xp = state.total_xp
        self.level = state.level
        self.current_streak = state.current_streak
        self.longest_streak = max(state.longest_streak, state.current_streak)
        self.last_activity_date = state.last_activity_date
        self.consecutive_correct = state.consecutive_correct


class UserAchievement(Base):
    """An achievement unlocked by a learner; created once, never updated."""

    __tablename__ = "achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_type", name="uq_achievements_user_type"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    achievement_type = Column(String(50), nullable=False, index=True)
    unlocked_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    details = Column("metadata", JSONB().with_variant(JSON(), "sqlite"), default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
