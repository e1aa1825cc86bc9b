"""
guarduim.store.events

In-process fan-out of store watch events.

Responsibilities:
- Give every `watch()` caller its own unbounded queue.
- Publish writes to all live subscribers without blocking the writer.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from guarduim.store.base import WatchEvent


class EventBroadcaster:
    def __init__(self) -> None:
        self._subscribers: set[asyncio.Queue[WatchEvent]] = set()

    def publish(self, event: WatchEvent) -> None:
        for q in list(self._subscribers):
            q.put_nowait(event)

    def subscribe(self) -> AsyncIterator[WatchEvent]:
        # Register now, not on first iteration, so no write between the call and the
        # first `__anext__` is missed.
        q: asyncio.Queue[WatchEvent] = asyncio.Queue()
        self._subscribers.add(q)
        return self._drain(q)

    async def _drain(self, q: asyncio.Queue[WatchEvent]) -> AsyncIterator[WatchEvent]:
        try:
            while True:
                yield await q.get()
        finally:
            self._subscribers.discard(q)


# --- Module Notes -----------------------------------------------------------
# Events only cover writes made through this process. Writers outside it (another
# replica, manual SQL) are picked up by the controller's periodic resync instead.
