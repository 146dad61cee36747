from __future__ import annotations

from dataclasses import dataclass, replace
from uuid import UUID

from unitstack.api.models import Direction, OutcomeKind, QueuedUnitView, UnitView


@dataclass(frozen=True, slots=True)
class Unit:
    """A matchable item. Level-ups produce a new value with the same id."""

    id: UUID
    kind: str
    level: int = 0

    def __post_init__(self) -> None:
        if self.level < 0:
            raise ValueError("level must be >= 0")

    def leveled_up(self) -> "Unit":
        return replace(self, level=self.level + 1)

    def to_view(self) -> UnitView:
        return UnitView(id=self.id, kind=self.kind, level=self.level)


@dataclass(frozen=True, slots=True)
class QueuedUnit:
    unit: Unit
    direction: Direction
    # Position inside this side's stack; 0 is the first member admitted to the side.
    order: int

    def to_view(self) -> QueuedUnitView:
        return QueuedUnitView(unit=self.unit.to_view(), direction=self.direction, order=self.order)


@dataclass(frozen=True, slots=True)
class AnswerOutcome:
    kind: OutcomeKind
    direction: Direction | None = None
    points: int = 0

    @staticmethod
    def correct(direction: Direction, points: int) -> "AnswerOutcome":
        return AnswerOutcome(kind=OutcomeKind.correct, direction=direction, points=points)

    @staticmethod
    def wrong(*, during_bonus: bool = False) -> "AnswerOutcome":
        kind = OutcomeKind.wrong_during_bonus if during_bonus else OutcomeKind.wrong
        return AnswerOutcome(kind=kind)


@dataclass(frozen=True, slots=True)
class ClockSnapshot:
    remaining: int
    total: int
    fever: bool = False
    fever_remaining: int = 0


@dataclass(frozen=True, slots=True)
class WindowSnapshot:
    window: tuple[QueuedUnit, ...]
    outcome: AnswerOutcome | None = None


@dataclass(frozen=True, slots=True)
class SessionResult:
    final_score: int
    reward: int
    seed: int
