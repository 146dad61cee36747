from __future__ import annotations

import logging
import random
from collections import deque

from unitstack.api.models import Direction
from unitstack.catalog import UnitCatalog
from unitstack.config import GameConfig
from unitstack.core.units import QueuedUnit, Unit

logger = logging.getLogger(__name__)


class UnitQueueManager:
    """Owns the units in play and the active window.

    Members are the kinds currently in play; each one is pinned to a side and
    stacked there in admission order. The active window is a FIFO of units drawn
    from the members, head first. While a session runs the window is exactly as
    long as the member list.
    """

    def __init__(self, *, catalog: UnitCatalog, config: GameConfig, rng: random.Random) -> None:
        if len(catalog) < config.starting_count:
            raise ValueError(f"Catalog has {len(catalog)} units, need at least starting_count={config.starting_count}")
        self._catalog = catalog
        self._config = config
        self._rng = rng

        self._members: list[QueuedUnit] = []
        self._sides: dict[Direction, list[QueuedUnit]] = {d: [] for d in Direction}
        self._window: deque[QueuedUnit] = deque()
        self._capacity = config.starting_count
        self._answer_count = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def members(self) -> tuple[QueuedUnit, ...]:
        return tuple(self._members)

    @property
    def window(self) -> tuple[QueuedUnit, ...]:
        return tuple(self._window)

    @property
    def head(self) -> QueuedUnit | None:
        return self._window[0] if self._window else None

    def side(self, direction: Direction) -> tuple[QueuedUnit, ...]:
        return tuple(self._sides[direction])

    def reset_all(self) -> None:
        self._members.clear()
        for stack in self._sides.values():
            stack.clear()
        self._window.clear()
        self._capacity = self._config.starting_count
        self._answer_count = 0

    def new_member(self) -> QueuedUnit | None:
        """Admit one more kind into play. No-op (None) at capacity or when the catalog is used up."""

        if len(self._members) >= self._capacity:
            logger.debug("new_member ignored: at capacity %s", self._capacity)
            return None

        unit = self._catalog.choose(self._rng, exclude={m.unit.id for m in self._members})
        if unit is None:
            logger.debug("new_member ignored: catalog exhausted")
            return None

        direction = self._rng.choice(list(Direction))
        stack = self._sides[direction]
        member = QueuedUnit(unit=unit, direction=direction, order=len(stack))
        stack.append(member)
        self._members.append(member)
        return member

    def startings(self) -> tuple[QueuedUnit, ...]:
        """Admit members up to the starting count and fill the window to match.

        Returns the members admitted by this call, in admission order.
        """

        admitted: list[QueuedUnit] = []
        while len(self._members) < self._capacity:
            member = self.new_member()
            if member is None:
                break
            admitted.append(member)
        self._refill()
        return tuple(admitted)

    def current_head_unit_score(self) -> int | None:
        head = self.head
        if head is None:
            return None
        return self.score_for(head.unit)

    def score_for(self, unit: Unit) -> int:
        return self._config.base_points + unit.level * self._config.level_points

    def is_move_action_correct(self, direction: Direction) -> bool:
        head = self.head
        return head is not None and head.direction == direction

    def raise_answer_count(self) -> None:
        self._answer_count += 1

    def is_time_to_level_up(self) -> bool:
        """Edge-triggered: true once per threshold crossing, and only if capacity can still grow.

        Capacity never exceeds the catalog, so a true result always has a unit
        for the following `new_member()`.
        """

        if self._answer_count < self._config.level_up_threshold:
            return False
        self._answer_count = 0
        if self._capacity >= min(self._config.max_count, len(self._catalog)):
            return False
        self._capacity += 1
        return True

    def remove_and_refilled(self) -> tuple[QueuedUnit, ...]:
        if self._window:
            self._window.popleft()
        self._refill()
        return self.window

    def _refill(self) -> None:
        if not self._members:
            return
        while len(self._window) < len(self._members):
            self._window.append(self._draw())

    def _draw(self) -> QueuedUnit:
        member = self._rng.choice(self._members)
        return QueuedUnit(unit=member.unit, direction=member.direction, order=member.order)
