"""Leitner review scheduling.

Each mastery level maps to a fixed review interval. The next review of a word
is its last practice time plus the interval of its current level; a word that
was never practiced has no scheduled review and is due immediately.

Due words are classified against calendar days in the configured timezone:
anything scheduled before today's midnight is overdue, anything scheduled
during today is due today, and anything scheduled within the look-ahead
window after today is due soon.
"""
from __future__ import annotations

import enum
import uuid
from datetime import datetime, timedelta
from typing import Iterable, Mapping, Sequence

from vocab_progress.core.records import DueWordsBreakdown, WordProgress
from vocab_progress.utils.time import ensure_utc, local_date, start_of_day, utcnow

DEFAULT_INTERVAL_DAYS: tuple[int, ...] = (0, 1, 3, 7, 14, 30)
DEFAULT_FALLBACK_DAYS = 90


class DueCategory(str, enum.Enum):
    OVERDUE = "overdue"
    DUE_TODAY = "due_today"
    DUE_SOON = "due_soon"
    NOT_DUE = "not_due"


class ReviewScheduler:
    """Compute review dates and due-word views for a learner."""

    def __init__(
        self,
        *,
        interval_days: Sequence[int] = DEFAULT_INTERVAL_DAYS,
        fallback_days: int = DEFAULT_FALLBACK_DAYS,
        due_soon_days: int = 3,
        tz_name: str = "UTC",
    ) -> None:
        if not interval_days:
            raise ValueError("interval_days must not be empty")
        self.interval_days = tuple(interval_days)
        # Reserved levels never review sooner than the top of the table.
        self.fallback_days = max(fallback_days, self.interval_days[-1])
        self.due_soon_days = due_soon_days
        self.tz_name = tz_name

    @classmethod
    def from_settings(cls, settings) -> "ReviewScheduler":
        return cls(
            interval_days=settings.REVIEW_INTERVAL_DAYS,
            fallback_days=settings.REVIEW_INTERVAL_FALLBACK_DAYS,
            due_soon_days=settings.DUE_SOON_WINDOW_DAYS,
            tz_name=settings.TIMEZONE,
        )

    def interval_for(self, level: int) -> timedelta:
        level = max(0, level)
        if level < len(self.interval_days):
            return timedelta(days=self.interval_days[level])
        return timedelta(days=self.fallback_days)

    def next_review_date(self, level: int, last_practiced: datetime | None) -> datetime | None:
        """Return when a word at ``level`` practiced at ``last_practiced`` is due."""

        if last_practiced is None:
            return None
        return ensure_utc(last_practiced) + self.interval_for(level)

    def schedule(self, progress: WordProgress) -> WordProgress:
        """Refresh the derived ``next_review_date`` of a record in place."""

        progress.next_review_date = self.next_review_date(
            progress.mastery_level, progress.last_practiced
        )
        return progress

    def classify(self, progress: WordProgress | None, now: datetime | None = None) -> DueCategory:
        """Return the urgency bucket of a word relative to ``now``."""

        if progress is None or progress.last_practiced is None:
            return DueCategory.DUE_TODAY

        now = ensure_utc(now or utcnow())
        due = self.next_review_date(progress.mastery_level, progress.last_practiced)
        today = local_date(now, self.tz_name)
        today_start = start_of_day(today, self.tz_name)
        tomorrow_start = start_of_day(today + timedelta(days=1), self.tz_name)
        window_end = start_of_day(today + timedelta(days=1 + self.due_soon_days), self.tz_name)

        if due < today_start:
            return DueCategory.OVERDUE
        if due < tomorrow_start:
            return DueCategory.DUE_TODAY
        if due < window_end:
            return DueCategory.DUE_SOON
        return DueCategory.NOT_DUE

    @staticmethod
    def priority_key(progress: WordProgress) -> tuple:
        """Weakest words first, then the longest unpracticed."""

        practiced = progress.last_practiced
        return (
            progress.mastery_level,
            practiced is not None,
            ensure_utc(practiced).timestamp() if practiced is not None else 0.0,
            progress.word_id,
        )

    def due_words(
        self,
        candidate_ids: Iterable[int],
        progress_by_id: Mapping[int, WordProgress],
        *,
        user_id: uuid.UUID,
        now: datetime | None = None,
    ) -> list[WordProgress]:
        """Return the candidates that need attention, highest priority first.

        Candidates without a progress record are projected as untouched,
        level-0 words and are always included.
        """

        now = ensure_utc(now or utcnow())
        due: list[WordProgress] = []
        seen: set[int] = set()
        for word_id in candidate_ids:
            if word_id in seen:
                continue
            seen.add(word_id)
            progress = progress_by_id.get(word_id)
            if progress is None:
                progress = WordProgress(user_id=user_id, word_id=word_id)
            if self.classify(progress, now) is not DueCategory.NOT_DUE:
                due.append(progress)
        due.sort(key=self.priority_key)
        return due

    def breakdown(
        self, records: Iterable[WordProgress], now: datetime | None = None
    ) -> DueWordsBreakdown:
        """Group records into overdue / due today / due soon buckets."""

        now = ensure_utc(now or utcnow())
        result = DueWordsBreakdown()
        buckets = {
            DueCategory.OVERDUE: result.overdue,
            DueCategory.DUE_TODAY: result.due_today,
            DueCategory.DUE_SOON: result.due_soon,
        }
        for progress in records:
            bucket = buckets.get(self.classify(progress, now))
            if bucket is not None:
                bucket.append(progress)
        for bucket in buckets.values():
            bucket.sort(key=self.priority_key)
        return result


__all__ = ["DueCategory", "ReviewScheduler"]
