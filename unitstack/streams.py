from __future__ import annotations

import asyncio
from collections.abc import Iterable

from unitstack.core.events import ALL_CHANNELS, SessionUpdate, UpdateChannel

_CLOSED = None


class Subscription:
    """One subscriber's view of a session's update streams.

    Updates are immutable snapshots. When the subscriber falls behind by more
    than `maxsize` entries, the oldest pending update is dropped.
    """

    def __init__(self, *, streams: "SessionStreams", channels: frozenset[UpdateChannel], maxsize: int) -> None:
        self._streams = streams
        self.channels = channels
        self._queue: asyncio.Queue[SessionUpdate | None] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, update: SessionUpdate) -> None:
        if self._closed or update.channel not in self.channels:
            return
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(update)

    async def get(self) -> SessionUpdate | None:
        """Next update, or None once the subscription is closed and drained."""

        if self._closed and self._queue.empty():
            return None
        return await self._queue.get()

    def get_nowait(self) -> SessionUpdate | None:
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def pending(self) -> list[SessionUpdate]:
        out: list[SessionUpdate] = []
        while (item := self.get_nowait()) is not None:
            out.append(item)
        return out

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._streams.discard(self)
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> SessionUpdate:
        item = await self.get()
        if item is None:
            raise StopAsyncIteration
        return item


class SessionStreams:
    """In-process publish/subscribe fan-out for one session."""

    def __init__(self) -> None:
        self._subs: set[Subscription] = set()

    def subscribe(self, *channels: UpdateChannel, maxsize: int = 256) -> Subscription:
        wanted = frozenset(channels) if channels else frozenset(ALL_CHANNELS)
        unknown = wanted - set(ALL_CHANNELS)
        if unknown:
            raise ValueError(f"Unknown channel(s): {','.join(sorted(unknown))}")
        sub = Subscription(streams=self, channels=wanted, maxsize=maxsize)
        self._subs.add(sub)
        return sub

    def discard(self, sub: Subscription) -> None:
        self._subs.discard(sub)

    def publish(self, updates: Iterable[SessionUpdate]) -> int:
        count = 0
        subs = list(self._subs)
        for update in updates:
            for sub in subs:
                sub.offer(update)
            count += 1
        return count

    def close_all(self) -> None:
        for sub in list(self._subs):
            sub.close()

    def __len__(self) -> int:
        return len(self._subs)
