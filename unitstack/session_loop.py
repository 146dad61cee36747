from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from unitstack.api.models import Direction, OutcomeKind, SessionState, SessionView
from unitstack.collaborators import NavigationCapability, NotificationCapability, StorageCapability
from unitstack.core.events import EventType, SessionEvent, SessionUpdate
from unitstack.core.units import SessionResult
from unitstack.session import GameSession
from unitstack.streams import SessionStreams

logger = logging.getLogger(__name__)


class SessionLoop:
    """Single owner of a GameSession.

    Player input and timer ticks are both enqueued into one inbox and applied
    one at a time by a consumer task, so a tick and an answer can never
    interleave. The public entry points only enqueue.

    Tick policy: catch-up. The timer measures elapsed monotonic time and
    delivers the number of whole ticks that passed since its last delivery, so
    scheduler jitter never drops time. A pause keeps the partial tick already
    elapsed and resume honours it.
    """

    def __init__(
        self,
        *,
        session: GameSession,
        storage: StorageCapability | None = None,
        navigator: NavigationCapability | None = None,
        notifier: NotificationCapability | None = None,
        autotick: bool = True,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.session = session
        self.streams = SessionStreams()
        self.storage = storage
        self.navigator = navigator
        self.notifier = notifier
        self.autotick = autotick

        self._clock = clock
        self._inbox: asyncio.Queue[SessionEvent] = asyncio.Queue()
        self._consumer: asyncio.Task[None] | None = None
        self._timer: asyncio.Task[None] | None = None

        self._anchor = 0.0
        self._delivered = 0
        self._carry = 0.0

        self._ended = asyncio.Event()
        self.is_new_high_score: bool | None = None

    # -- entry points --------------------------------------------------------

    def start(self) -> None:
        self._enqueue("START")

    def pause(self) -> None:
        self._enqueue("PAUSE")

    def resume(self) -> None:
        self._enqueue("RESUME")

    def answer(self, direction: Direction) -> None:
        self._enqueue("ANSWER", {"direction": Direction(direction).value})

    def tick(self, count: int = 1) -> None:
        """Manual tick, for callers running with `autotick=False`."""

        self._enqueue("TICK", {"count": count})

    # -- read side -----------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def result(self) -> SessionResult | None:
        return self.session.result

    @property
    def timer_running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def snapshot(self) -> SessionView:
        return self.session.to_view()

    async def drain(self) -> None:
        """Wait until every event enqueued so far has been processed."""

        if self._consumer is None:
            return
        await self._inbox.join()

    async def wait_ended(self, timeout: float | None = None) -> SessionResult | None:
        await asyncio.wait_for(self._ended.wait(), timeout=timeout)
        return self.session.result

    async def close(self) -> None:
        self._disarm_timer()
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None
        self.streams.close_all()

    # -- consumer ------------------------------------------------------------

    def _enqueue(self, type: EventType, payload: dict[str, object] | None = None) -> None:
        if self._consumer is None:
            self._consumer = asyncio.get_running_loop().create_task(self._consume())
        self._inbox.put_nowait(SessionEvent.now(type=type, payload=payload))

    async def _consume(self) -> None:
        while True:
            event = await self._inbox.get()
            try:
                await self._process(event)
            except Exception:
                logger.exception("session=%s failed processing %s", self.session.session_id, event.type)
            finally:
                self._inbox.task_done()

    async def _process(self, event: SessionEvent) -> None:
        if self.session.state == SessionState.ended:
            logger.debug("session=%s dropped %s after end", self.session.session_id, event.type)
            return

        applied = self.session.apply(event)
        if applied.rejected:
            if event.payload.get("source") == "timer" and self.session.state == SessionState.paused:
                # Timer delivery that raced a pause: keep the time for resume.
                self._carry += int(event.payload.get("count", 1)) * self.session.config.tick_seconds
            return

        if applied.state_changed:
            self._sync_timer(event)

        self.streams.publish(applied.updates)
        self._signal(applied.updates)

        if applied.ended:
            await self._handle_end()

    def _signal(self, updates: list[SessionUpdate]) -> None:
        if self.notifier is None:
            return
        for update in updates:
            try:
                if update.channel == "window" and update.window is not None and update.window.outcome is not None:
                    if update.window.outcome.kind != OutcomeKind.correct:
                        self.notifier.on_wrong_answer()
                elif update.channel == "fever" and update.clock is not None:
                    self.notifier.on_fever_toggled(update.clock.fever)
            except Exception:
                # Signals are best-effort.
                logger.warning("session=%s notifier failed", self.session.session_id, exc_info=True)

    async def _handle_end(self) -> None:
        self._disarm_timer()
        result = self.session.result
        assert result is not None

        if self.storage is not None:
            try:
                self.storage.record_reward(result.reward)
                self.is_new_high_score = self.storage.record_high_score(result.final_score)
            except Exception:
                logger.exception("session=%s storage failed at session end", self.session.session_id)

        if self.navigator is not None:
            try:
                await self.navigator.on_session_ended(final_score=result.final_score, reward_granted=result.reward)
            except Exception:
                logger.exception("session=%s navigator failed at session end", self.session.session_id)

        self._ended.set()

    # -- timer ---------------------------------------------------------------

    def _now(self) -> float:
        if self._clock is not None:
            return self._clock()
        return asyncio.get_running_loop().time()

    def _sync_timer(self, event: SessionEvent) -> None:
        state = self.session.state
        if state == SessionState.running:
            if event.type == "START":
                self._carry = 0.0
            self._arm_timer()
        elif state == SessionState.paused:
            elapsed = self._now() - self._anchor - self._delivered * self.session.config.tick_seconds
            self._carry = max(0.0, elapsed)
            self._disarm_timer()
        else:
            self._disarm_timer()

    def _arm_timer(self) -> None:
        if not self.autotick or self.timer_running:
            return
        self._anchor = self._now() - self._carry
        self._delivered = 0
        self._carry = 0.0
        self._timer = asyncio.get_running_loop().create_task(self._run_timer())

    def _disarm_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _run_timer(self) -> None:
        tick = self.session.config.tick_seconds
        while True:
            delay = self._anchor + (self._delivered + 1) * tick - self._now()
            if delay > 0:
                await asyncio.sleep(delay)
            due = int((self._now() - self._anchor) // tick) - self._delivered
            if due <= 0:
                await asyncio.sleep(0)
                continue
            self._delivered += due
            self._inbox.put_nowait(SessionEvent.now(type="TICK", payload={"count": due, "source": "timer"}))
