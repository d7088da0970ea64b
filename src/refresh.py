"""
src/refresh.py
Per-collection refresh coordinator: cache-hit vs. full refresh, single in-flight refresh.
Exports: RefreshCoordinator
"""

import asyncio
import logging
from typing import Any, Callable

from src.cache_store import get_snapshot, put_snapshot
from src.enrichment.orchestrator import EnrichmentOrchestrator, RefreshCancelled
from src.github.fetcher import SourceFetcher
from src.github.parsing import SourceRecord, parse_issue, parse_project_item
from src.shared import CollectionType, now_ms
from src.stream import ProgressBroadcaster

logger = logging.getLogger(__name__)


class RefreshCoordinator:
    """Serves a collection from its snapshot or rebuilds it, one refresh at a time."""

    def __init__(
        self,
        collection: CollectionType,
        *,
        db_path: str,
        fetcher: SourceFetcher,
        orchestrator: EnrichmentOrchestrator,
        broadcaster: ProgressBroadcaster,
        batch_size: int,
        ttl_ms: int = 24 * 60 * 60 * 1000,
        now: Callable[[], int] = now_ms,
    ) -> None:
        self.collection = collection
        self.db_path = db_path
        self.fetcher = fetcher
        self.orchestrator = orchestrator
        self.broadcaster = broadcaster
        self.batch_size = batch_size
        self.ttl_ms = ttl_ms
        self.now = now
        self._inflight: asyncio.Task[list[dict[str, Any]]] | None = None
        self._cancel_event: asyncio.Event | None = None

    @property
    def is_refreshing(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def cached_data(self) -> list[dict[str, Any]] | None:
        """Return snapshot data when a snapshot exists and is within TTL."""
        snapshot = get_snapshot(self.db_path, self.collection)
        if snapshot is None or not snapshot.is_fresh(self.now(), self.ttl_ms):
            return None
        return snapshot.data

    def cache_info(self) -> dict[str, Any]:
        snapshot = get_snapshot(self.db_path, self.collection)
        if snapshot is None or not snapshot.is_fresh(self.now(), self.ttl_ms):
            return {"lastUpdated": None, "isCached": False}
        return {"lastUpdated": snapshot.last_updated, "isCached": True}

    async def get_collection(self, force_refresh: bool = False) -> list[dict[str, Any]]:
        """
        Return the enriched collection.

        Args:
            force_refresh: Skip the snapshot and rebuild.
        Returns:
            Enriched records in display order.
        Raises:
            GraphQLError: Primary list could not be fetched.
            RefreshCancelled: Refresh was aborted.
        """
        if not force_refresh:
            cached = self.cached_data()
            if cached is not None:
                logger.info("Serving %s data from cache.", self.collection.value)
                return cached
        if self.is_refreshing:
            logger.info("Joining in-flight %s refresh.", self.collection.value)
        else:
            logger.info(
                "%s for %s, fetching fresh data...",
                "Force refresh requested" if force_refresh else "Cache miss",
                self.collection.value,
            )
            self._cancel_event = asyncio.Event()
            self._inflight = asyncio.create_task(self._refresh(self._cancel_event))
            self._inflight.add_done_callback(_consume_result)
        return await asyncio.shield(self._inflight)

    def abort(self) -> bool:
        """Request cancellation of the in-flight refresh; False when idle."""
        if not self.is_refreshing or self._cancel_event is None:
            return False
        logger.warning("Abort requested for %s refresh.", self.collection.value)
        self._cancel_event.set()
        return True

    async def _fetch_records(self) -> list[SourceRecord]:
        self.broadcaster.report("Fetching GitHub data", 0, 100)
        raw_nodes: list[dict[str, Any]] = []
        if self.collection is CollectionType.ROADMAP:
            pages = self.fetcher.fetch_project_items()
        else:
            pages = self.fetcher.fetch_open_issues()
        async for page, nodes in pages:
            self.broadcaster.report(f"Fetching GitHub data (page {page})", min(page * 10, 100), 100)
            raw_nodes.extend(nodes)
        logger.info("Total %s items fetched: %d", self.collection.value, len(raw_nodes))

        self.broadcaster.report("Processing items for AI extraction", 0, len(raw_nodes))
        if self.collection is CollectionType.ROADMAP:
            parsed = [parse_project_item(node) for node in raw_nodes]
        else:
            parsed = [parse_issue(node) for node in raw_nodes]
        records = [record for record in parsed if record is not None]
        self.broadcaster.report("Filtering complete", len(records), len(raw_nodes))
        logger.info("Processing %d valid %s items for AI extraction...", len(records), self.collection.value)
        return records

    async def _refresh(self, cancel_event: asyncio.Event) -> list[dict[str, Any]]:
        try:
            records = await self._fetch_records()
            enriched = await self.orchestrator.enrich(
                records,
                self.collection,
                batch_size=self.batch_size,
                progress=self.broadcaster,
                cancel_event=cancel_event,
            )
            self.broadcaster.report("Saving to cache", len(enriched), len(enriched))
            put_snapshot(self.db_path, self.collection, enriched, timestamp=self.now())
            self.broadcaster.report("Complete", len(enriched), len(enriched))
            return enriched
        except RefreshCancelled as exc:
            logger.warning("%s refresh aborted: %s", self.collection.value, exc)
            self.broadcaster.report("Refresh aborted", 0, 0)
            raise
        except Exception:
            logger.exception("Error refreshing %s.", self.collection.value)
            self.broadcaster.report("Refresh failed", 0, 0)
            raise


def _consume_result(task: asyncio.Task) -> None:
    # Failures are logged in _refresh; mark them retrieved for abandoned awaiters.
    if not task.cancelled():
        task.exception()
