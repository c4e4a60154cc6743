"""Pydantic models for learning sessions."""
from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

LearningDirection = Literal["ru-it", "it-ru"]


class SessionStartRequest(BaseModel):
    """Payload for starting a learning session."""

    direction: LearningDirection = Field(..., description="Translation direction")


class SessionSnapshotRead(BaseModel):
    """Current counters of a learning session."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    direction: str
    started_at: datetime
    ended_at: datetime | None = None
    words_studied: int
    correct_answers: int


class SessionStartResponse(BaseModel):
    """Newly opened session and the one it closed, if any."""

    session: SessionSnapshotRead
    closed_previous: SessionSnapshotRead | None = None
