"""Endpoints for learner vocabulary progress."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from vocab_progress.api import deps
from vocab_progress.schemas import (
    AchievementRead,
    AnswerRequest,
    DueWordsBreakdownRead,
    DueWordsRequest,
    GamificationStateRead,
    ProgressStats,
    SessionSnapshotRead,
    SyncResponse,
    UpdateProgressResponse,
    WordProgressRead,
)
from vocab_progress.services.facade import ProgressFacade


router = APIRouter(prefix="/progress", tags=["progress"])


@router.post("/answers", response_model=UpdateProgressResponse)
def submit_answer(
    *,
    payload: AnswerRequest,
    facade: ProgressFacade = Depends(deps.get_facade),
) -> UpdateProgressResponse:
    """Record an answer. Offline answers are queued and still reflected."""

    result = facade.update_progress(
        payload.word_id,
        payload.correct,
        difficulty_rating=payload.difficulty_rating,
        response_time_ms=payload.response_time_ms,
    )
    return UpdateProgressResponse(
        progress=WordProgressRead.model_validate(result.progress),
        unlocked=[AchievementRead.from_definition(definition) for definition in result.unlocked],
        session=SessionSnapshotRead.model_validate(result.session) if result.session else None,
        gamification=GamificationStateRead.from_state(result.gamification),
        queued=result.queued,
        message=result.message,
    )


@router.get("/stats", response_model=ProgressStats)
def get_stats(*, facade: ProgressFacade = Depends(deps.get_facade)) -> ProgressStats:
    return facade.get_stats()


@router.post("/due", response_model=list[WordProgressRead])
def get_due_words(
    *,
    payload: DueWordsRequest,
    facade: ProgressFacade = Depends(deps.get_facade),
) -> list[WordProgressRead]:
    """Filter candidate word ids down to the ones due for review."""

    return [
        WordProgressRead.model_validate(progress)
        for progress in facade.get_due_words(payload.candidate_ids)
    ]


@router.get("/due/breakdown", response_model=DueWordsBreakdownRead)
def get_due_breakdown(
    *, facade: ProgressFacade = Depends(deps.get_facade)
) -> DueWordsBreakdownRead:
    breakdown = facade.get_due_breakdown()
    return DueWordsBreakdownRead(
        overdue=[WordProgressRead.model_validate(item) for item in breakdown.overdue],
        due_today=[WordProgressRead.model_validate(item) for item in breakdown.due_today],
        due_soon=[WordProgressRead.model_validate(item) for item in breakdown.due_soon],
        total=breakdown.total,
    )


@router.post("/sync", response_model=SyncResponse)
def sync_progress(*, facade: ProgressFacade = Depends(deps.get_facade)) -> SyncResponse:
    """Replay answers saved while the progress store was unreachable."""

    report = facade.sync()
    return SyncResponse(applied=report.applied, remaining=report.remaining, online=facade.is_online)


@router.get("/{word_id}", response_model=WordProgressRead)
def get_word_progress(
    *,
    word_id: int,
    facade: ProgressFacade = Depends(deps.get_facade),
) -> WordProgressRead:
    progress = facade.get_progress(word_id)
    if progress is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No progress for this word")
    return WordProgressRead.model_validate(progress)
