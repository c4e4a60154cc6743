"""Plain records exchanged between the engine components."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from vocab_progress.core.mastery import accuracy


@dataclass(slots=True)
class WordProgress:
    """In-memory projection of a ``user_progress`` row."""

    user_id: uuid.UUID
    word_id: int
    correct_count: int = 0
    wrong_count: int = 0
    mastery_level: int = 0
    last_practiced: datetime | None = None
    next_review_date: datetime | None = None

    @property
    def attempts(self) -> int:
        return self.correct_count + self.wrong_count

    @property
    def accuracy(self) -> float:
        return accuracy(self.correct_count, self.wrong_count)


@dataclass(slots=True)
class DueWordsBreakdown:
    """Due words grouped by urgency; computed on request, never persisted."""

    overdue: list[WordProgress] = field(default_factory=list)
    due_today: list[WordProgress] = field(default_factory=list)
    due_soon: list[WordProgress] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.overdue) + len(self.due_today) + len(self.due_soon)
