"""Best-effort fan-out of simulation events to live subscribers.

Each subscriber owns a bounded :class:`asyncio.Queue`.  ``publish`` only ever
calls ``put_nowait``, so a slow consumer can never hold up a simulation tick
or another subscriber: when its queue is full the event is dropped for that
subscriber alone.  Delivery is at-most-once; a client that misses events is
expected to re-read history over HTTP.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any

from pvsim_api.services.errors import PublishError

log = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 100


class Subscription:
    """Handle returned by :meth:`Publisher.subscribe`."""

    def __init__(self, token: int, maxsize: int) -> None:
        self.token = token
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=maxsize)
        self.closed = False
        self.dropped = 0

    @property
    def ready(self) -> bool:
        return not self.closed

    def offer(self, event: dict[str, Any]) -> bool:
        if self.closed:
            return False
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            return False
        return True

    async def get(self) -> dict[str, Any]:
        return await self.queue.get()

    def close(self) -> None:
        self.closed = True

    def __repr__(self) -> str:
        return f"<Subscription token={self.token} pending={self.queue.qsize()} closed={self.closed}>"


class Publisher:
    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        if queue_size <= 0:
            raise ValueError("queue_size must be positive")
        self.queue_size = queue_size
        self._subscribers: dict[int, Subscription] = {}
        self._tokens = itertools.count(1)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, maxsize: int | None = None) -> Subscription:
        sub = Subscription(next(self._tokens), maxsize or self.queue_size)
        self._subscribers[sub.token] = sub
        log.info("Subscriber %d connected (%d total)", sub.token, len(self._subscribers))
        return sub

    def unsubscribe(self, sub: Subscription | int) -> None:
        token = sub if isinstance(sub, int) else sub.token
        removed = self._subscribers.pop(token, None)
        if removed is not None:
            removed.close()
            log.info("Subscriber %d disconnected (%d total)", token, len(self._subscribers))

    def publish(self, event: dict[str, Any]) -> int:
        """Offer *event* to every ready subscriber; return how many accepted it."""
        delivered = 0
        # Snapshot: subscribers may come and go while we iterate.
        for sub in list(self._subscribers.values()):
            if not sub.ready:
                continue
            try:
                if sub.offer(event):
                    delivered += 1
                else:
                    log.debug("Subscriber %d queue full, event dropped", sub.token)
            except Exception as exc:
                err = PublishError(f"subscriber {sub.token}: {exc}")
                log.warning("Publish failed: %s", err)
        return delivered

    def close_all(self) -> None:
        for token in list(self._subscribers):
            self.unsubscribe(token)
