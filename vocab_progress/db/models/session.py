"""Learning session model."""
import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from vocab_progress.db.base import Base

LEARNING_DIRECTIONS = ("ru-it", "it-ru")


class LearningSession(Base):
    """A bounded practice session of a single learner."""

    __tablename__ = "learning_sessions"
    __table_args__ = (
        CheckConstraint(
            "learning_direction IN ('ru-it', 'it-ru')", name="ck_learning_sessions_direction"
        ),
        CheckConstraint(
            "correct_answers >= 0 AND correct_answers <= words_studied",
            name="ck_learning_sessions_counters",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)

    started_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    ended_at = Column(DateTime(timezone=True))
    words_studied = Column(Integer, nullable=False, default=0)
    correct_answers = Column(Integer, nullable=False, default=0)
    learning_direction = Column(String(10), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
