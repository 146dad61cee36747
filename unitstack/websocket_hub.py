from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from fastapi import WebSocket

from unitstack.core.events import SessionUpdate

logger = logging.getLogger(__name__)


class SessionWebSocketHub:
    """Pushes session updates to the WebSocket clients watching each session.

    Clients join with `connect(session_id, websocket)`. Engine updates go out via
    `publish_update`, and the end-of-session summary via `publish_session_ended`.
    Every message carries the `session_id` and a `type`. A client whose send fails
    is dropped from the session.
    """

    def __init__(self) -> None:
        self._watchers: dict[str, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def connect(self, session_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._watchers[session_id].add(websocket)
            watching = len(self._watchers[session_id])
        logger.debug("session=%s websocket joined watchers=%s", session_id, watching)

    async def disconnect(self, session_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            self._drop(session_id, websocket)

    async def publish_update(self, session_id: str, update: SessionUpdate) -> None:
        payload = update.to_payload()
        payload["session_id"] = session_id
        await self._send(session_id, payload)

    async def publish_session_ended(self, session_id: str, *, final_score: int, reward: int) -> None:
        await self._send(
            session_id,
            {
                "type": "session_ended",
                "session_id": session_id,
                "final_score": final_score,
                "reward": reward,
            },
        )

    async def _send(self, session_id: str, payload: dict[str, object]) -> None:
        async with self._lock:
            watchers = list(self._watchers.get(session_id, ()))

        stale: list[WebSocket] = []
        for ws in watchers:
            try:
                await ws.send_json(payload)
            except Exception:
                logger.debug("session=%s dropping dead websocket", session_id)
                stale.append(ws)

        if stale:
            async with self._lock:
                for ws in stale:
                    self._drop(session_id, ws)

    def _drop(self, session_id: str, websocket: WebSocket) -> None:
        watchers = self._watchers.get(session_id)
        if not watchers:
            return
        watchers.discard(websocket)
        if not watchers:
            del self._watchers[session_id]


class HubNavigator:
    """Navigation collaborator: tells watching clients the session is over."""

    def __init__(self, *, hub: SessionWebSocketHub, session_id: str) -> None:
        self.hub = hub
        self.session_id = session_id

    async def on_session_ended(self, *, final_score: int, reward_granted: int) -> None:
        await self.hub.publish_session_ended(self.session_id, final_score=final_score, reward=reward_granted)
