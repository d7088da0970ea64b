"""
src/context.py
Process-scoped application context wiring the pipeline components together.
Exports: AppContext, build_app_context
"""

import asyncio
from dataclasses import dataclass, field
import logging
from typing import Any

import httpx

from src.cache_store import init_cache_db
from src.config import Config, Settings
from src.enrichment.orchestrator import EnrichmentOrchestrator
from src.github.client import GraphQLClient
from src.github.fetcher import SourceFetcher
from src.housekeeper import CacheSweeper
from src.inference.gateway import InferenceGateway
from src.inference.llm import CrewLLMClient, InferenceClient
from src.refresh import RefreshCoordinator
from src.retry_worker import RetryQueue, RetryWorker
from src.shared import CollectionType
from src.stream import ProgressBroadcaster

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything that lives for the process lifetime; one instance per app."""

    settings: Settings
    graphql: GraphQLClient
    gateway: InferenceGateway
    retry_queue: RetryQueue
    retry_worker: RetryWorker
    sweeper: CacheSweeper
    broadcasters: dict[CollectionType, ProgressBroadcaster]
    coordinators: dict[CollectionType, RefreshCoordinator]
    tasks: list[asyncio.Task[Any]] = field(default_factory=list)

    def start_background(self) -> None:
        """Start the retry worker and cache sweeper loops."""
        self.tasks.append(asyncio.create_task(self.retry_worker.run_forever()))
        self.tasks.append(asyncio.create_task(self.sweeper.run_forever()))

    async def aclose(self) -> None:
        for task in self.tasks:
            task.cancel()
        await asyncio.gather(*self.tasks, return_exceptions=True)
        self.tasks.clear()
        await self.graphql.aclose()


def build_app_context(
    settings: Settings,
    *,
    inference_client: InferenceClient | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> AppContext:
    """
    Initialize the cache store and construct every pipeline component.

    Args:
        settings: Configuration snapshot.
        inference_client: Model client override (tests); defaults to CrewLLMClient.
        http_client: httpx client override for the graph service (tests).
    Returns:
        Ready AppContext; background loops are not started.
    Raises:
        sqlite3.Error: Cache store cannot be initialized.
    """
    init_cache_db(settings.db_path)
    graphql = GraphQLClient(settings.graphql_url, Config.get_github_token, http_client=http_client)
    fetcher = SourceFetcher(
        graphql,
        project_org=settings.project_org,
        project_number=settings.project_number,
        issues_owner=settings.issues_owner,
        issues_name=settings.issues_name,
        project_max_pages=settings.roadmap_max_pages,
        issues_max_pages=settings.issues_max_pages,
        comment_page_delay=settings.comment_page_delay_seconds,
    )
    gateway = InferenceGateway(
        settings.db_path,
        inference_client or CrewLLMClient(settings.model),
        success_ttl_ms=settings.inference_ttl_ms,
        failure_cooldown_ms=settings.failure_cooldown_ms,
    )
    retry_queue = RetryQueue(
        base_delay_ms=settings.retry_interval_seconds * 1000,
        initial_delay_ms=settings.failure_cooldown_ms,
        max_attempts=settings.retry_max_attempts,
    )
    retry_worker = RetryWorker(
        retry_queue,
        gateway,
        interval_seconds=settings.retry_interval_seconds,
        batch=settings.retry_batch,
        item_delay_seconds=settings.retry_item_delay_seconds,
    )
    sweeper = CacheSweeper(
        settings.db_path,
        max_age_ms=settings.inference_ttl_ms * settings.sweep_age_multiplier,
        interval_seconds=settings.sweep_interval_seconds,
    )
    orchestrator = EnrichmentOrchestrator(fetcher, gateway, retry_queue)
    broadcasters = {collection: ProgressBroadcaster(collection.value) for collection in CollectionType}
    batch_sizes = {
        CollectionType.ROADMAP: settings.roadmap_batch_size,
        CollectionType.ISSUES: settings.issues_batch_size,
    }
    coordinators = {
        collection: RefreshCoordinator(
            collection,
            db_path=settings.db_path,
            fetcher=fetcher,
            orchestrator=orchestrator,
            broadcaster=broadcasters[collection],
            batch_size=batch_sizes[collection],
            ttl_ms=settings.snapshot_ttl_ms,
        )
        for collection in CollectionType
    }
    logger.info("Roadboard context ready (db=%s, model=%s).", settings.db_path, settings.model)
    return AppContext(
        settings=settings,
        graphql=graphql,
        gateway=gateway,
        retry_queue=retry_queue,
        retry_worker=retry_worker,
        sweeper=sweeper,
        broadcasters=broadcasters,
        coordinators=coordinators,
    )
