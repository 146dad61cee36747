from __future__ import annotations

from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, Field


class SessionState(StrEnum):
    ready = "ready"
    running = "running"
    paused = "paused"
    ended = "ended"


class Direction(StrEnum):
    left = "left"
    right = "right"


class OutcomeKind(StrEnum):
    correct = "correct"
    wrong = "wrong"
    wrong_during_bonus = "wrong_during_bonus"


class SessionCreateRequest(BaseModel):
    profile_id: str = Field(..., min_length=1, max_length=64)
    # For reproducibility/debugging; random when omitted.
    seed: int | None = None


class AnswerRequest(BaseModel):
    direction: Direction


class UnitView(BaseModel):
    id: UUID
    kind: str
    level: int = Field(..., ge=0)


class QueuedUnitView(BaseModel):
    unit: UnitView
    direction: Direction
    order: int


class OutcomeView(BaseModel):
    kind: OutcomeKind
    direction: Direction | None = None
    points: int = 0


class SessionView(BaseModel):
    session_id: UUID
    profile_id: str
    seed: int
    state: SessionState

    remaining: int
    total: int

    score: int
    correct_streak: int

    fever: bool = False
    fever_remaining: int = 0

    capacity: int
    members: list[QueuedUnitView] = Field(default_factory=list)
    window: list[QueuedUnitView] = Field(default_factory=list)
    last_outcome: OutcomeView | None = None

    # Filled once the session has ended.
    final_score: int | None = None
    reward: int | None = None


class ProfileView(BaseModel):
    profile_id: str
    money: int
    high_score: int
    units: list[UnitView]
