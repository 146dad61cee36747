from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

from unitstack.core.units import Unit

logger = logging.getLogger(__name__)


class StorageCapability(Protocol):
    def record_reward(self, amount: int) -> int:  # pragma: no cover
        ...

    def record_high_score(self, candidate: int) -> bool:  # pragma: no cover
        ...

    def current_catalog(self) -> Sequence[Unit]:  # pragma: no cover
        ...


class NavigationCapability(Protocol):
    async def on_session_ended(self, *, final_score: int, reward_granted: int) -> None:  # pragma: no cover
        ...


class NotificationCapability(Protocol):
    def on_wrong_answer(self) -> None:  # pragma: no cover
        ...

    def on_fever_toggled(self, on: bool) -> None:  # pragma: no cover
        ...


class LoggingNotifier:
    """Stands in for audio/haptics on a server: signals only reach the log."""

    def on_wrong_answer(self) -> None:
        logger.debug("signal: wrong answer")

    def on_fever_toggled(self, on: bool) -> None:
        logger.debug("signal: fever %s", "on" if on else "off")


@dataclass(slots=True)
class RecordingNavigator:
    """Keeps every session-end call. Handy for CLI runs and tests."""

    calls: list[tuple[int, int]] = field(default_factory=list)

    async def on_session_ended(self, *, final_score: int, reward_granted: int) -> None:
        self.calls.append((final_score, reward_granted))
