from __future__ import annotations

import asyncio
import logging
from uuid import UUID

import redis

from unitstack.catalog import UnitCatalog
from unitstack.collaborators import LoggingNotifier
from unitstack.config import GameConfig
from unitstack.session import GameSession
from unitstack.session_loop import SessionLoop
from unitstack.storage import RedisProfileStore
from unitstack.streams import Subscription
from unitstack.websocket_hub import HubNavigator, SessionWebSocketHub

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Owns every live SessionLoop of the process.

    Created once per app and handed to routes through a dependency; callers
    never touch session state except through a loop's entry points.
    """

    def __init__(
        self,
        *,
        config: GameConfig,
        hub: SessionWebSocketHub,
        autotick: bool = True,
        ended_retention_seconds: float = 60.0,
    ) -> None:
        self.config = config
        self.hub = hub
        self.autotick = autotick
        # How long an ended session stays readable via GET /sessions/{id} before eviction.
        self.ended_retention_seconds = ended_retention_seconds
        self._loops: dict[UUID, SessionLoop] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    def get(self, session_id: UUID) -> SessionLoop | None:
        return self._loops.get(session_id)

    def __len__(self) -> int:
        return len(self._loops)

    async def create(self, *, r: redis.Redis, profile_id: str, seed: int | None = None) -> SessionLoop:
        """Build a session from the profile's catalog and start it."""

        store = RedisProfileStore(r=r, profile_id=profile_id)
        catalog = UnitCatalog.from_units(store.current_catalog())
        session = GameSession(catalog=catalog, config=self.config, seed=seed, profile_id=profile_id)
        sid = str(session.session_id)

        loop = SessionLoop(
            session=session,
            storage=store,
            navigator=HubNavigator(hub=self.hub, session_id=sid),
            notifier=LoggingNotifier(),
            autotick=self.autotick,
        )
        self._loops[session.session_id] = loop

        self._spawn(self._forward_to_hub(sid, loop.streams.subscribe()))
        self._spawn(self._finish(loop, store))

        loop.start()
        await loop.drain()
        logger.info("session=%s created for profile=%s", sid, profile_id)
        return loop

    async def close_all(self) -> None:
        for loop in list(self._loops.values()):
            await loop.close()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._loops.clear()

    def _spawn(self, coro) -> None:  # type: ignore[no-untyped-def]
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _forward_to_hub(self, sid: str, sub: Subscription) -> None:
        async for update in sub:
            await self.hub.publish_update(sid, update)

    async def _finish(self, loop: SessionLoop, store: RedisProfileStore) -> None:
        """Record the result of an ended session, then evict it after the retention window."""

        result = await loop.wait_ended()
        if result is not None:
            try:
                store.record_result(
                    session_id=loop.session.session_id,
                    result=result,
                    is_new_high_score=loop.is_new_high_score,
                )
            except Exception:
                logger.exception("session=%s failed to record result", loop.session.session_id)

        if self.ended_retention_seconds > 0:
            await asyncio.sleep(self.ended_retention_seconds)
        await self._evict(loop)

    async def _evict(self, loop: SessionLoop) -> None:
        sid = loop.session.session_id
        if self._loops.get(sid) is loop:
            del self._loops[sid]
        # Closing the streams ends the hub forwarder for this session.
        await loop.close()
        logger.info("session=%s evicted live=%s", sid, len(self._loops))
