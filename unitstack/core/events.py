from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from unitstack.api.models import SessionState
from unitstack.core.units import ClockSnapshot, QueuedUnit, SessionResult, WindowSnapshot

EventType = Literal[
    "START",
    "PAUSE",
    "RESUME",
    "ANSWER",
    "TICK",
]

UpdateChannel = Literal[
    "state",
    "window",
    "member",
    "clock",
    "fever",
    "ended",
]

ALL_CHANNELS: tuple[UpdateChannel, ...] = ("state", "window", "member", "clock", "fever", "ended")


@dataclass(frozen=True, slots=True)
class SessionEvent:
    """Inbound event for a session. Timer ticks and player input share this type."""

    type: EventType
    payload: dict[str, Any] = field(default_factory=dict)
    ts: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @staticmethod
    def now(*, type: EventType, payload: dict[str, Any] | None = None) -> "SessionEvent":
        return SessionEvent(type=type, payload=payload or {}, ts=datetime.now(timezone.utc))


@dataclass(frozen=True, slots=True)
class SessionUpdate:
    """Outbound, immutable notification published to subscribers."""

    channel: UpdateChannel
    state: SessionState
    window: WindowSnapshot | None = None
    member: QueuedUnit | None = None
    clock: ClockSnapshot | None = None
    result: SessionResult | None = None

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {"type": self.channel, "state": self.state.value}
        if self.window is not None:
            payload["window"] = [q.to_view().model_dump(mode="json") for q in self.window.window]
            outcome = self.window.outcome
            if outcome is not None:
                payload["outcome"] = {
                    "kind": outcome.kind.value,
                    "direction": outcome.direction.value if outcome.direction else None,
                    "points": outcome.points,
                }
        if self.member is not None:
            payload["member"] = self.member.to_view().model_dump(mode="json")
        if self.clock is not None:
            payload["remaining"] = self.clock.remaining
            payload["total"] = self.clock.total
            payload["fever"] = self.clock.fever
            payload["fever_remaining"] = self.clock.fever_remaining
        if self.result is not None:
            payload["final_score"] = self.result.final_score
            payload["reward"] = self.result.reward
        return payload


@dataclass(frozen=True, slots=True)
class AppliedEvent:
    """Result of applying an event.

    - `state_changed`: if the lifecycle state moved.
    - `updates`: outbox entries to publish to subscribers.
    - `rejected`: the event was not valid in the current state and was ignored.
    """

    state_changed: bool
    updates: list[SessionUpdate]
    rejected: bool = False

    @property
    def ended(self) -> bool:
        return any(u.channel == "ended" for u in self.updates)
