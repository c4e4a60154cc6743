"""Word progress and review history models."""
import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from vocab_progress.core.records import WordProgress
from vocab_progress.db.base import Base
from vocab_progress.utils.time import ensure_utc


class UserProgress(Base):
    """Per-user answer counters for a single word."""

    __tablename__ = "user_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "word_id", name="uq_user_progress_user_word"),
        CheckConstraint("mastery_level BETWEEN 0 AND 5", name="ck_user_progress_mastery_level"),
        CheckConstraint("correct_count >= 0", name="ck_user_progress_correct_count"),
        CheckConstraint("wrong_count >= 0", name="ck_user_progress_wrong_count"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    # Catalog ids live in an external word catalog; no foreign key here.
    word_id = Column(Integer, nullable=False, index=True)

    correct_count = Column(Integer, nullable=False, default=0)
    wrong_count = Column(Integer, nullable=False, default=0)
    mastery_level = Column(Integer, nullable=False, default=0)
    last_practiced = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def to_record(self) -> WordProgress:
        """Return the in-memory projection of this row."""

        return WordProgress(
            user_id=self.user_id,
            word_id=self.word_id,
            correct_count=self.correct_count or 0,
            wrong_count=self.wrong_count or 0,
            mastery_level=self.mastery_level or 0,
            last_practiced=ensure_utc(self.last_practiced),
        )


class ReviewHistory(Base):
    """Append-only log of every applied answer."""

    __tablename__ = "review_history"
    __table_args__ = (
        CheckConstraint(
            "difficulty_rating IS NULL OR difficulty_rating BETWEEN 1 AND 4",
            name="ck_review_history_difficulty_rating",
        ),
        CheckConstraint("previous_level BETWEEN 0 AND 5", name="ck_review_history_previous_level"),
        CheckConstraint("new_level BETWEEN 0 AND 5", name="ck_review_history_new_level"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    word_id = Column(Integer, nullable=False, index=True)
    session_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    # Id of the applied event; a replayed duplicate is recognised by it.
    event_id = Column(UUID(as_uuid=True), nullable=False, unique=True)

    review_date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    correct = Column(Boolean, nullable=False)
    response_time_ms = Column(Integer)
    difficulty_rating = Column(Integer)
    previous_level = Column(Integer, nullable=False)
    new_level = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
