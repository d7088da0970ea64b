"""
Batch-barrier enrichment of source records.
Exports: EnrichmentOrchestrator, RefreshCancelled, batched
"""

import asyncio
import logging
from typing import Any, Iterator, TypeVar

from src.enrichment.records import issue_record, roadmap_record
from src.github.parsing import Comment, SourceRecord
from src.retry_worker import RetryQueue
from src.shared import EXTRACTION_FAILED, CollectionType
from src.stream import ProgressBroadcaster

logger = logging.getLogger(__name__)

T = TypeVar("T")

ITEM_STEP = {
    CollectionType.ROADMAP: "Processing AI extraction",
    CollectionType.ISSUES: "Processing AI analysis",
}


class RefreshCancelled(RuntimeError):
    """Raised between batches when the refresh was aborted."""


def batched(items: list[T], size: int) -> Iterator[list[T]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class EnrichmentOrchestrator:
    """Fans records out to the fetcher and gateway in fixed-size batches."""

    def __init__(self, fetcher: Any, gateway: Any, retry_queue: RetryQueue) -> None:
        self.fetcher = fetcher
        self.gateway = gateway
        self.retry_queue = retry_queue

    async def enrich(
        self,
        records: list[SourceRecord],
        task: CollectionType,
        *,
        batch_size: int,
        progress: ProgressBroadcaster | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> list[dict[str, Any]]:
        """
        Enrich `records`, preserving input order.

        Each batch is awaited in full before the next starts. Records without a title are dropped.

        Args:
            records: Normalized source records.
            task: Which collection shape to build.
            batch_size: Concurrency window.
            progress: Broadcaster receiving one event per item as it starts.
            cancel_event: Checked before each batch.
        Returns:
            Enriched records.
        Raises:
            RefreshCancelled: `cancel_event` was set.
        """
        total = len(records)
        enriched: list[dict[str, Any]] = []
        batch_count = (total + batch_size - 1) // batch_size
        for batch_number, batch in enumerate(batched(records, batch_size), start=1):
            if cancel_event is not None and cancel_event.is_set():
                raise RefreshCancelled(f"{task.value} refresh aborted before batch {batch_number}")
            offset = (batch_number - 1) * batch_size
            results = await asyncio.gather(
                *(
                    self._enrich_one(record, task, offset + index + 1, total, progress)
                    for index, record in enumerate(batch)
                )
            )
            enriched.extend(item for item in results if item is not None)
            logger.info(
                "Completed batch %d/%d, processed %d/%d items",
                batch_number,
                batch_count,
                len(enriched),
                total,
            )
        return enriched

    async def _comments_for(self, record: SourceRecord) -> list[Comment]:
        page = record.comments
        if not page.has_next_page:
            return list(page.comments)
        logger.info("Issue %s has more comments, fetching all...", record.title)
        return await self.fetcher.fetch_all_comments(record.id, page.comments, page.has_next_page, page.end_cursor)

    async def _enrich_one(
        self,
        record: SourceRecord,
        task: CollectionType,
        position: int,
        total: int,
        progress: ProgressBroadcaster | None,
    ) -> dict[str, Any] | None:
        if progress is not None:
            progress.report(f"{ITEM_STEP[task]} ({position}/{total})", position, total)
        if not record.title:
            logger.warning("Skipping item %d/%d with no title (id=%s).", position, total, record.id or "?")
            return None
        logger.info("Processing %d/%d: %s", position, total, record.title)

        if task is CollectionType.ROADMAP:
            extracted_date = await self.gateway.extract_timeline(record.title, record.body)
            if extracted_date == EXTRACTION_FAILED:
                self.retry_queue.add(record.title, record.body)
            comments = await self._comments_for(record)
            extracted_eta = await self.gateway.extract_eta(record.title, comments, record.assignee_logins)
            return roadmap_record(record, comments, extracted_date=extracted_date, extracted_eta=extracted_eta)

        comments = await self._comments_for(record)
        ai_summary = await self.gateway.analyze_issue(record.title, record.body, comments, record.assignee_logins)
        return issue_record(record, comments, ai_summary=ai_summary)
