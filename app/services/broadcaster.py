# app/services/broadcaster.py
"""
Update broadcaster — wakes connected dashboard viewers when a visitor changes.

Each subscriber owns a small asyncio.Queue bound to the event loop that
serves its streaming response. publish() may be called from any thread
(sync route handlers run in the threadpool), so delivery is scheduled onto
the subscriber's loop with call_soon_threadsafe. A full queue drops the
signal: one pending "update" already tells the viewer to refresh.

This is a wake-up primitive, not an event log: nothing is replayed to
subscribers that connect later.
"""

import asyncio
import threading
from typing import Optional, Set

from app.utils.logger import get_logger

logger = get_logger(__name__)

UPDATE_EVENT = "update"


class Subscription:
    """Handle returned by UpdateBroadcaster.subscribe()."""

    def __init__(self, loop: asyncio.AbstractEventLoop, maxsize: int):
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    def offer(self, event: str):
        """Runs on the subscriber's loop. Never blocks."""
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.debug("Subscriber queue full — dropping signal")

    async def next_event(self, timeout: Optional[float] = None) -> Optional[str]:
        """Wait for the next signal; returns None when the timeout elapses first."""
        try:
            return await asyncio.wait_for(self.queue.get(), timeout)
        except asyncio.TimeoutError:
            return None


class UpdateBroadcaster:
    def __init__(self, queue_size: int = 16):
        self._queue_size = queue_size
        self._subscribers: Set[Subscription] = set()
        self._lock = threading.Lock()

    def subscribe(self) -> Subscription:
        """Register a subscriber. Must be called from inside a running event loop."""
        sub = Subscription(asyncio.get_running_loop(), self._queue_size)
        with self._lock:
            self._subscribers.add(sub)
        logger.info(f"Dashboard subscriber connected ({self.subscriber_count} total)")
        return sub

    def unsubscribe(self, sub: Subscription):
        with self._lock:
            self._subscribers.discard(sub)
        logger.info(f"Dashboard subscriber disconnected ({self.subscriber_count} total)")

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: str = UPDATE_EVENT) -> int:
        """
        Deliver `event` to every subscriber registered right now.
        Returns the number of subscribers the signal was handed to.
        """
        with self._lock:
            targets = list(self._subscribers)

        delivered = 0
        for sub in targets:
            try:
                sub.loop.call_soon_threadsafe(sub.offer, event)
                delivered += 1
            except RuntimeError:
                # Loop closed, subscriber is gone
                self.unsubscribe(sub)
        logger.debug(f"Broadcast '{event}' to {delivered} subscriber(s)")
        return delivered
