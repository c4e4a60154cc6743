"""Learning session endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status

from vocab_progress.api import deps
from vocab_progress.schemas import SessionSnapshotRead, SessionStartRequest, SessionStartResponse
from vocab_progress.services.facade import ProgressFacade
from vocab_progress.utils.exceptions import SessionError

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("", response_model=SessionStartResponse, status_code=status.HTTP_201_CREATED)
def start_session(
    *,
    payload: SessionStartRequest,
    facade: ProgressFacade = Depends(deps.get_facade),
) -> SessionStartResponse:
    """Open a learning session, closing the one that is still open."""

    session, closed = facade.start_session(payload.direction)
    return SessionStartResponse(
        session=SessionSnapshotRead.model_validate(session),
        closed_previous=SessionSnapshotRead.model_validate(closed) if closed else None,
    )


@router.post("/end", response_model=SessionSnapshotRead | None)
def end_session(
    *,
    facade: ProgressFacade = Depends(deps.get_facade),
) -> SessionSnapshotRead | None:
    """Close the open session. Returns ``null`` when nothing was open."""

    session = facade.end_session()
    return SessionSnapshotRead.model_validate(session) if session else None


@router.get("/current", response_model=SessionSnapshotRead)
def get_current_session(
    *,
    facade: ProgressFacade = Depends(deps.get_facade),
) -> SessionSnapshotRead:
    session = facade.current_session()
    if session is None:
        raise SessionError("No learning session is open")
    return SessionSnapshotRead.model_validate(session)
