"""
Per-job progress fan-out to any number of live subscribers
"""
import asyncio
from typing import AsyncIterator, Optional, Set

from loguru import logger

from models import JobPhase

TERMINAL_PHASES = {JobPhase.DONE.value, JobPhase.ERROR.value}


class Subscription:
    """One listener's independent queue of snapshots"""

    def __init__(self, broadcaster: "ProgressBroadcaster", queue_size: int = 100):
        self._broadcaster = broadcaster
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.dropped = 0
        self.closed = False

    def push(self, payload: dict) -> None:
        """Enqueue without blocking, dropping the oldest snapshot when full"""
        if self.queue.full():
            self.queue.get_nowait()
            self.dropped += 1
        self.queue.put_nowait(payload)

    async def events(
        self, keepalive_interval: float, stop_on_terminal: bool = True
    ) -> AsyncIterator[Optional[dict]]:
        """
        Yield snapshots as they arrive, and None on every keep-alive tick

        Keep-alive ticks run on a fixed cadence from the moment iteration
        starts, whether or not real updates are flowing. The subscription is
        closed when iteration ends.

        Args:
            keepalive_interval: Seconds between keep-alive ticks
            stop_on_terminal: End after delivering a done/error snapshot
        """
        loop = asyncio.get_running_loop()
        next_ping = loop.time() + keepalive_interval
        try:
            while True:
                now = loop.time()
                if now >= next_ping:
                    next_ping = now + keepalive_interval
                    yield None
                    continue

                if not self.queue.empty():
                    payload = self.queue.get_nowait()
                else:
                    try:
                        payload = await asyncio.wait_for(self.queue.get(), timeout=next_ping - now)
                    except asyncio.TimeoutError:
                        continue

                yield payload
                if stop_on_terminal and payload.get("phase") in TERMINAL_PHASES:
                    return
        finally:
            self.close()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._broadcaster.unsubscribe(self)


class ProgressBroadcaster:
    """Publishes job snapshots to every attached subscriber"""

    def __init__(self, job_id: str, queue_size: int = 100):
        self.job_id = job_id
        self.queue_size = queue_size
        self._subscribers: Set[Subscription] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, snapshot: dict) -> Subscription:
        """
        Attach a new subscriber

        Args:
            snapshot: Current job snapshot, delivered first

        Returns:
            The subscription, already holding the snapshot
        """
        subscription = Subscription(self, self.queue_size)
        subscription.push(snapshot)
        self._subscribers.add(subscription)
        logger.debug(f"Subscriber attached to job {self.job_id} ({self.subscriber_count} total)")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.discard(subscription)
            logger.debug(f"Subscriber detached from job {self.job_id} ({self.subscriber_count} left)")

    def publish(self, payload: dict) -> None:
        """Deliver a snapshot to all current subscribers; never blocks"""
        for subscription in list(self._subscribers):
            subscription.push(payload)
