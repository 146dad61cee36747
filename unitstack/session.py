from __future__ import annotations

import logging
import random
from uuid import UUID, uuid4

from unitstack.api.models import Direction, OutcomeView, SessionState, SessionView
from unitstack.catalog import UnitCatalog
from unitstack.config import GameConfig
from unitstack.core.events import AppliedEvent, SessionEvent, SessionUpdate
from unitstack.core.units import AnswerOutcome, ClockSnapshot, QueuedUnit, SessionResult, WindowSnapshot
from unitstack.fsm import InvalidTransition, SessionFSM
from unitstack.queue_manager import UnitQueueManager

logger = logging.getLogger(__name__)


class GameSession:
    """Authoritative state of one play session.

    Purely synchronous: every entry point mutates in-process data and returns the
    updates to publish. Serialising calls (timer ticks vs. player input) is the
    caller's job, see `unitstack.session_loop.SessionLoop`.
    """

    def __init__(
        self,
        *,
        catalog: UnitCatalog,
        config: GameConfig | None = None,
        seed: int | None = None,
        profile_id: str = "local",
        session_id: UUID | None = None,
    ) -> None:
        self.config = config or GameConfig()
        self.session_id = session_id or uuid4()
        self.profile_id = profile_id
        self.seed = seed if seed is not None else random.SystemRandom().randint(1, 2**31 - 1)

        self.queue = UnitQueueManager(catalog=catalog, config=self.config, rng=random.Random(self.seed))
        self.fsm = SessionFSM()

        self._remaining = self.config.total_ticks
        self._score = 0
        self._streak = 0
        self._fever_remaining = 0
        self._last_outcome: AnswerOutcome | None = None
        self._result: SessionResult | None = None

    # -- read side -----------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self.fsm.session_state

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def total(self) -> int:
        return self.config.total_ticks

    @property
    def score(self) -> int:
        return self._score

    @property
    def correct_streak(self) -> int:
        return self._streak

    @property
    def fever(self) -> bool:
        return self._fever_remaining > 0

    @property
    def fever_remaining(self) -> int:
        return self._fever_remaining

    @property
    def last_outcome(self) -> AnswerOutcome | None:
        return self._last_outcome

    @property
    def result(self) -> SessionResult | None:
        return self._result

    def clock(self) -> ClockSnapshot:
        return ClockSnapshot(
            remaining=self._remaining,
            total=self.config.total_ticks,
            fever=self.fever,
            fever_remaining=self._fever_remaining,
        )

    def window_snapshot(self) -> WindowSnapshot:
        return WindowSnapshot(window=self.queue.window, outcome=self._last_outcome)

    def to_view(self) -> SessionView:
        outcome = self._last_outcome
        return SessionView(
            session_id=self.session_id,
            profile_id=self.profile_id,
            seed=self.seed,
            state=self.state,
            remaining=self._remaining,
            total=self.config.total_ticks,
            score=self._score,
            correct_streak=self._streak,
            fever=self.fever,
            fever_remaining=self._fever_remaining,
            capacity=self.queue.capacity,
            members=[m.to_view() for m in self.queue.members],
            window=[q.to_view() for q in self.queue.window],
            last_outcome=(
                OutcomeView(kind=outcome.kind, direction=outcome.direction, points=outcome.points)
                if outcome is not None
                else None
            ),
            final_score=self._result.final_score if self._result else None,
            reward=self._result.reward if self._result else None,
        )

    # -- event dispatch ------------------------------------------------------

    def apply(self, event: SessionEvent) -> AppliedEvent:
        """Apply one inbound event. Invalid transitions are ignored, never raised."""

        before = self.state
        try:
            if event.type == "START":
                updates = self.start()
            elif event.type == "PAUSE":
                updates = self.pause()
            elif event.type == "RESUME":
                updates = self.resume()
            elif event.type == "ANSWER":
                updates = self.answer(Direction(str(event.payload.get("direction"))))
            elif event.type == "TICK":
                updates = self.tick(int(event.payload.get("count", 1)))
            else:
                raise ValueError(f"Unknown event type: {event.type}")
        except InvalidTransition as e:
            logger.debug("session=%s ignored: %s", self.session_id, e)
            return AppliedEvent(state_changed=False, updates=[], rejected=True)

        return AppliedEvent(state_changed=self.state != before, updates=updates)

    # -- lifecycle -----------------------------------------------------------

    def start(self) -> list[SessionUpdate]:
        self.fsm.fire("start")

        self.queue.reset_all()
        self._score = 0
        self._streak = 0
        self._remaining = self.config.total_ticks
        self._fever_remaining = 0
        self._last_outcome = None

        updates: list[SessionUpdate] = [self._state_update()]
        for member in self.queue.startings():
            updates.append(self._member_update(member))
        updates.append(self._window_update())
        updates.append(self._clock_update())

        logger.info("session=%s started seed=%s window=%s", self.session_id, self.seed, len(self.queue.window))
        return updates

    def pause(self) -> list[SessionUpdate]:
        self.fsm.fire("pause")
        logger.info("session=%s paused remaining=%s", self.session_id, self._remaining)
        return [self._state_update()]

    def resume(self) -> list[SessionUpdate]:
        self.fsm.fire("resume")
        logger.info("session=%s resumed remaining=%s", self.session_id, self._remaining)
        return [self._state_update()]

    def tick(self, count: int = 1) -> list[SessionUpdate]:
        """Advance the countdown by `count` whole ticks, one at a time."""

        self._require_running("tick")
        if count < 1:
            return []

        updates: list[SessionUpdate] = []
        for _ in range(count):
            if self.fever:
                self._fever_remaining -= 1
                if self._fever_remaining == 0:
                    updates.append(self._fever_update())
                updates.append(self._clock_update())
                continue

            self._remaining = max(0, self._remaining - 1)
            updates.append(self._clock_update())
            if self._remaining == 0:
                updates.extend(self._end())
                break
        return updates

    def answer(self, direction: Direction) -> list[SessionUpdate]:
        self._require_running("answer")

        head_score = self.queue.current_head_unit_score()
        if head_score is None:
            # Should not happen while running; the window is always full.
            logger.warning("session=%s answer ignored: empty window", self.session_id)
            return []

        if self.queue.is_move_action_correct(direction):
            return self._correct(direction, head_score)
        return self._wrong()

    # -- internals -----------------------------------------------------------

    def _correct(self, direction: Direction, head_score: int) -> list[SessionUpdate]:
        updates: list[SessionUpdate] = []

        points = head_score * (self.config.fever_multiplier if self.fever else 1)
        self._score += points
        self._streak += 1

        self.queue.raise_answer_count()
        if self.queue.is_time_to_level_up():
            member = self.queue.new_member()
            if member is not None:
                logger.info("session=%s level up capacity=%s", self.session_id, self.queue.capacity)
                updates.append(self._member_update(member))

        self.queue.remove_and_refilled()
        self._last_outcome = AnswerOutcome.correct(direction, points)
        updates.append(self._window_update())

        if self._should_start_fever():
            self._fever_remaining = self.config.fever_ticks
            updates.append(self._fever_update())
            updates.append(self._clock_update())
        return updates

    def _wrong(self) -> list[SessionUpdate]:
        self._streak = 0

        if self.fever:
            self._last_outcome = AnswerOutcome.wrong(during_bonus=True)
            return [self._window_update()]

        self._last_outcome = AnswerOutcome.wrong()
        self._remaining = max(0, self._remaining - self.config.wrong_penalty)
        updates = [self._window_update(), self._clock_update()]
        if self._remaining == 0:
            updates.extend(self._end())
        return updates

    def _should_start_fever(self) -> bool:
        streak = self.config.fever_streak
        return bool(streak) and not self.fever and self._streak > 0 and self._streak % streak == 0

    def _end(self) -> list[SessionUpdate]:
        self.fsm.fire("finish")
        self._fever_remaining = 0
        self._result = SessionResult(
            final_score=self._score,
            reward=self._score // self.config.reward_divisor,
            seed=self.seed,
        )
        logger.info(
            "session=%s ended score=%s reward=%s",
            self.session_id,
            self._result.final_score,
            self._result.reward,
        )
        return [
            self._state_update(),
            SessionUpdate(channel="ended", state=self.state, result=self._result),
        ]

    def _require_running(self, action: str) -> None:
        if self.state != SessionState.running:
            raise InvalidTransition(action, self.state)

    def _state_update(self) -> SessionUpdate:
        return SessionUpdate(channel="state", state=self.state)

    def _window_update(self) -> SessionUpdate:
        return SessionUpdate(channel="window", state=self.state, window=self.window_snapshot())

    def _member_update(self, member: QueuedUnit) -> SessionUpdate:
        return SessionUpdate(channel="member", state=self.state, member=member)

    def _clock_update(self) -> SessionUpdate:
        return SessionUpdate(channel="clock", state=self.state, clock=self.clock())

    def _fever_update(self) -> SessionUpdate:
        return SessionUpdate(channel="fever", state=self.state, clock=self.clock())
