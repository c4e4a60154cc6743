"""Shared API dependencies."""
from __future__ import annotations

import threading
import uuid
from datetime import datetime
from typing import Callable

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from vocab_progress.config import settings
from vocab_progress.db.session import LocalSessionLocal, SessionLocal
from vocab_progress.services.facade import ProgressFacade
from vocab_progress.utils.time import utcnow

_facades: dict[uuid.UUID, ProgressFacade] = {}
_facades_lock = threading.Lock()


def get_session_factory() -> Callable[[], Session]:
    """Return the factory for remote progress store sessions."""

    return SessionLocal


def get_local_session_factory() -> Callable[[], Session]:
    """Return the factory for offline queue sessions."""

    return LocalSessionLocal


def get_clock() -> Callable[[], datetime]:
    return utcnow


def get_user_id(x_user_id: str = Header(..., alias="X-User-Id")) -> uuid.UUID:
    """Resolve the learner from the ``X-User-Id`` header."""

    try:
        return uuid.UUID(x_user_id)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-Id header must be a UUID",
        ) from exc


def get_facade(
    user_id: uuid.UUID = Depends(get_user_id),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    local_session_factory: Callable[[], Session] = Depends(get_local_session_factory),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> ProgressFacade:
    """Return the cached facade of the learner, loading it on first use."""

    with _facades_lock:
        facade = _facades.get(user_id)
        if facade is None:
            facade = ProgressFacade.from_settings(
                settings,
                user_id=user_id,
                session_factory=session_factory,
                local_session_factory=local_session_factory,
                clock=clock,
            )
            facade.load()
            _facades[user_id] = facade
        return facade


def reset_facades() -> None:
    """Forget every cached facade."""

    with _facades_lock:
        _facades.clear()
