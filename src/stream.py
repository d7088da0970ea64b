"""
src/stream.py
Progress broadcaster streaming refresh progress to live dashboard clients.
Exports: ProgressEvent, ProgressBroadcaster, make_progress_event, format_sse, stream_progress
"""

import asyncio
from dataclasses import asdict, dataclass
import json
import logging
from typing import AsyncIterator

logger = logging.getLogger(__name__)

DEFAULT_SUBSCRIBER_BUFFER = 256


@dataclass(frozen=True)
class ProgressEvent:
    """One progress update emitted during a refresh."""

    step: str
    current: int
    total: int

    def to_dict(self) -> dict[str, int | str]:
        return asdict(self)


def make_progress_event(step: str, current: int = 0, total: int = 0) -> ProgressEvent:
    """Build a progress event with non-negative counters."""
    return ProgressEvent(step=step, current=max(current, 0), total=max(total, 0))


def format_sse(event: ProgressEvent) -> str:
    """Serialize an event as one `text/event-stream` frame."""
    return f"data: {json.dumps(event.to_dict())}\n\n"


class ProgressBroadcaster:
    """Fans progress events out to subscribed observers, keeping the latest event.

    Subscriber queues carry `ProgressEvent`s; a `None` item means the broadcaster
    dropped the subscriber and the consumer must stop reading.
    """

    def __init__(self, name: str = "progress", buffer_size: int = DEFAULT_SUBSCRIBER_BUFFER) -> None:
        self.name = name
        self._buffer_size = buffer_size
        self._subscribers: list[asyncio.Queue[ProgressEvent | None]] = []
        self.current: ProgressEvent | None = None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, *, replay_current: bool = True) -> asyncio.Queue[ProgressEvent | None]:
        """Register an observer and return its delivery queue.

        Args:
            replay_current: Deliver the most recent event immediately when one exists.
        Returns:
            Queue the observer reads events from until it receives `None`.
        """
        queue: asyncio.Queue[ProgressEvent | None] = asyncio.Queue(maxsize=self._buffer_size)
        if replay_current and self.current is not None:
            queue.put_nowait(self.current)
        self._subscribers.append(queue)
        logger.info("%s subscriber added. Total: %d", self.name, len(self._subscribers))
        return queue

    def unsubscribe(self, queue: asyncio.Queue[ProgressEvent | None]) -> None:
        """Remove an observer from the pool."""
        if queue in self._subscribers:
            self._subscribers.remove(queue)
        logger.info("%s subscriber removed. Total: %d", self.name, len(self._subscribers))

    def _drop(self, queue: asyncio.Queue[ProgressEvent | None]) -> None:
        """Unsubscribe a stalled observer and leave only the close marker in its queue."""
        self.unsubscribe(queue)
        while not queue.empty():
            queue.get_nowait()
        queue.put_nowait(None)

    def publish(self, event: ProgressEvent) -> None:
        """Record `event` as current and deliver it to every subscriber.

        Subscribers whose queue cannot accept the event are treated as disconnected
        and told so through the close marker.
        """
        self.current = event
        dead: list[asyncio.Queue[ProgressEvent | None]] = []
        for queue in self._subscribers:
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                dead.append(queue)
        for queue in dead:
            logger.warning("Dropping stalled %s subscriber.", self.name)
            self._drop(queue)

    def report(self, step: str, current: int = 0, total: int = 0) -> None:
        """Shorthand for publishing a freshly built event."""
        self.publish(make_progress_event(step, current, total))


async def stream_progress(
    broadcaster: ProgressBroadcaster,
    *,
    max_seconds: float,
) -> AsyncIterator[str]:
    """Yield SSE frames for one subscriber until `max_seconds` elapse or it is dropped.

    The subscription is released when the generator is closed, including on client disconnect.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + max_seconds
    queue = broadcaster.subscribe()
    try:
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return
            try:
                event = await asyncio.wait_for(queue.get(), timeout=remaining)
            except asyncio.TimeoutError:
                return
            if event is None:
                logger.info("%s progress stream closed after falling behind.", broadcaster.name)
                return
            yield format_sse(event)
    finally:
        broadcaster.unsubscribe(queue)
