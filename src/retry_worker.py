"""
src/retry_worker.py
In-memory retry queue and background worker for failed timeline extractions.
Exports: RetryQueueItem, RetryQueue, RetryWorker
"""

import asyncio
from dataclasses import dataclass
import logging
from typing import Any, Callable

from src.inference.fingerprint import fingerprint
from src.shared import EXTRACTION_FAILED, now_ms, short_title

logger = logging.getLogger(__name__)


@dataclass
class RetryQueueItem:
    """One failed timeline extraction awaiting another attempt."""

    title: str
    body: str
    attempts: int = 0
    next_attempt_at: int = 0

    @property
    def key(self) -> str:
        return fingerprint("timeline", self.title, self.body)


class RetryQueue:
    """
    FIFO of failed extractions, deduplicated by fingerprint.

    Each failed retry doubles the wait before the next one; after `max_attempts`
    failures the item is abandoned. Abandoned items are only counted, plus a
    bounded most-recent record keyed by fingerprint.
    """

    def __init__(
        self,
        *,
        base_delay_ms: int = 60 * 1000,
        initial_delay_ms: int = 60 * 1000,
        max_attempts: int = 10,
        abandoned_limit: int = 50,
        now: Callable[[], int] = now_ms,
    ) -> None:
        self.base_delay_ms = base_delay_ms
        self.initial_delay_ms = initial_delay_ms
        self.max_attempts = max_attempts
        self.abandoned_limit = abandoned_limit
        self.now = now
        self._items: list[RetryQueueItem] = []
        self._abandoned: dict[str, dict[str, Any]] = {}
        self.abandoned_count = 0

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: str) -> bool:
        return any(item.key == key for item in self._items)

    def add(self, title: str, body: str) -> bool:
        """Append a failed extraction; returns False when it is already queued."""
        item = RetryQueueItem(title=title, body=body, next_attempt_at=self.now() + self.initial_delay_ms)
        if item.key in self:
            return False
        self._items.append(item)
        logger.info("Queued %s for background retry. Pending: %d", short_title(title), len(self._items))
        return True

    def take_due(self, limit: int) -> list[RetryQueueItem]:
        """Remove and return up to `limit` items whose backoff has elapsed, oldest first."""
        current = self.now()
        due: list[RetryQueueItem] = []
        for item in self._items:
            if len(due) >= limit:
                break
            if item.next_attempt_at <= current:
                due.append(item)
        for item in due:
            self._items.remove(item)
        return due

    def postpone(self, item: RetryQueueItem) -> None:
        """Put an item back without spending an attempt, e.g. while its failure is still cooling down."""
        item.next_attempt_at = self.now() + self.initial_delay_ms
        self._items.append(item)

    def requeue(self, item: RetryQueueItem) -> bool:
        """
        Put a failed item back at the tail with exponential backoff.

        Returns:
            False when the item reached max_attempts and was abandoned.
        """
        item.attempts += 1
        if item.attempts >= self.max_attempts:
            self._abandon(item)
            return False
        item.next_attempt_at = self.now() + self.base_delay_ms * 2 ** (item.attempts - 1)
        self._items.append(item)
        return True

    def _abandon(self, item: RetryQueueItem) -> None:
        self.abandoned_count += 1
        self._abandoned.pop(item.key, None)
        self._abandoned[item.key] = {"title": item.title, "attempts": item.attempts}
        while len(self._abandoned) > self.abandoned_limit:
            del self._abandoned[next(iter(self._abandoned))]
        logger.warning("Abandoning retry for %s after %d attempts.", short_title(item.title), item.attempts)

    def status(self) -> dict[str, Any]:
        return {
            "pending": len(self._items),
            "abandoned": self.abandoned_count,
            "items": [{"title": item.title, "attempts": item.attempts} for item in self._items],
            "abandonedItems": list(self._abandoned.values()),
        }


class RetryWorker:
    """Drains the retry queue through the gateway's timeline path on a fixed interval."""

    def __init__(
        self,
        queue: RetryQueue,
        gateway: Any,
        *,
        interval_seconds: float = 60,
        batch: int = 3,
        item_delay_seconds: float = 5,
    ) -> None:
        self.queue = queue
        self.gateway = gateway
        self.interval_seconds = interval_seconds
        self.batch = batch
        self.item_delay_seconds = item_delay_seconds

    async def run_once(self) -> int:
        """
        Retry up to `batch` due items.

        Returns:
            Number of items that succeeded.
        """
        items = self.queue.take_due(self.batch)
        if not items:
            return 0
        logger.info("Processing %d retry items (%d still queued).", len(items), len(self.queue))
        succeeded = 0
        for index, item in enumerate(items):
            if self.gateway.timeline_cooling_down(item.title, item.body):
                logger.info("Postponing retry for %s; last failure is still cooling down.", short_title(item.title))
                self.queue.postpone(item)
                continue
            if index:
                await asyncio.sleep(self.item_delay_seconds)
            logger.info("Background retry for %s.", short_title(item.title))
            try:
                result = await self.gateway.extract_timeline(item.title, item.body)
            except Exception:
                logger.exception("Retry failed for %s.", short_title(item.title))
                self.queue.requeue(item)
                continue
            if result == EXTRACTION_FAILED:
                self.queue.requeue(item)
                continue
            succeeded += 1
            logger.info("Successfully retried %s -> %s", short_title(item.title), result or "No timeline found")
        return succeeded

    async def run_forever(self) -> None:
        logger.info("Retry worker started.")
        try:
            while True:
                await asyncio.sleep(self.interval_seconds)
                try:
                    await self.run_once()
                except Exception:
                    logger.exception("Retry worker tick failed.")
        except asyncio.CancelledError:
            logger.info("Retry worker cancelled.")
            raise
