"""Unit tests for src/refresh.py: snapshot TTL, single-flight refresh and abort."""

import asyncio
import logging

import pytest

from conftest import BASE_TIME_MS, FakeInferenceClient
from src.cache_store import get_snapshot, put_snapshot
from src.enrichment.orchestrator import EnrichmentOrchestrator, RefreshCancelled
from src.github.client import GraphQLError
from src.inference.gateway import InferenceGateway
from src.refresh import RefreshCoordinator
from src.retry_worker import RetryQueue
from src.shared import CollectionType
from src.stream import ProgressBroadcaster

DAY_MS = 24 * 60 * 60 * 1000


def _issue_node(index: int) -> dict:
    return {
        "id": f"I_{index}",
        "title": f"Issue {index}",
        "url": f"https://github.com/Azure/AKS/issues/{index}",
        "body": f"Body {index}",
        "createdAt": "2025-01-01T00:00:00Z",
        "updatedAt": "2025-02-01T00:00:00Z",
        "state": "OPEN",
        "labels": {"nodes": []},
        "assignees": {"nodes": []},
        "comments": {"totalCount": 0, "pageInfo": {"hasNextPage": False, "endCursor": None}, "nodes": []},
    }


class FakeFetcher:
    """Serves canned pages; `gate` lets a test hold the refresh mid-fetch."""

    def __init__(self, pages=None, error: Exception | None = None) -> None:
        self.pages = pages if pages is not None else [[_issue_node(1), _issue_node(2)]]
        self.error = error
        self.gate: asyncio.Event | None = None
        self.calls = 0

    async def _pages(self):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        for number, nodes in enumerate(self.pages, start=1):
            yield number, nodes

    def fetch_open_issues(self):
        return self._pages()

    def fetch_project_items(self):
        return self._pages()

    async def fetch_all_comments(self, record_id, known_comments, has_more, cursor):
        return list(known_comments)


def _coordinator(db_path, clock, fetcher, *, client=None, batch_size=5):
    gateway = InferenceGateway(
        db_path,
        client or FakeInferenceClient(),
        success_ttl_ms=DAY_MS,
        failure_cooldown_ms=60_000,
        now=clock,
    )
    orchestrator = EnrichmentOrchestrator(fetcher, gateway, RetryQueue(now=clock))
    return RefreshCoordinator(
        CollectionType.ISSUES,
        db_path=db_path,
        fetcher=fetcher,
        orchestrator=orchestrator,
        broadcaster=ProgressBroadcaster("issues"),
        batch_size=batch_size,
        ttl_ms=DAY_MS,
        now=clock,
    )


@pytest.mark.asyncio
async def test_snapshot_served_within_ttl_and_rebuilt_after(db_path, clock):
    put_snapshot(db_path, CollectionType.ISSUES, [{"id": "cached"}], timestamp=BASE_TIME_MS)
    fetcher = FakeFetcher()
    coordinator = _coordinator(db_path, clock, fetcher)

    clock.advance(hours=23, minutes=59)
    assert await coordinator.get_collection() == [{"id": "cached"}]
    assert fetcher.calls == 0

    clock.advance(minutes=2)
    result = await coordinator.get_collection()

    assert [item["id"] for item in result] == ["I_1", "I_2"]
    assert fetcher.calls == 1
    assert get_snapshot(db_path, CollectionType.ISSUES).timestamp == clock()


@pytest.mark.asyncio
async def test_force_refresh_bypasses_fresh_snapshot(db_path, clock):
    put_snapshot(db_path, CollectionType.ISSUES, [{"id": "cached"}], timestamp=BASE_TIME_MS)
    fetcher = FakeFetcher()
    coordinator = _coordinator(db_path, clock, fetcher)

    result = await coordinator.get_collection(force_refresh=True)

    assert [item["id"] for item in result] == ["I_1", "I_2"]
    assert fetcher.calls == 1


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_refresh(db_path, clock):
    fetcher = FakeFetcher()
    fetcher.gate = asyncio.Event()
    coordinator = _coordinator(db_path, clock, fetcher)

    first = asyncio.create_task(coordinator.get_collection())
    await asyncio.sleep(0)
    second = asyncio.create_task(coordinator.get_collection(force_refresh=True))
    await asyncio.sleep(0)
    assert coordinator.is_refreshing is True
    fetcher.gate.set()

    results = await asyncio.gather(first, second)

    assert results[0] == results[1]
    assert fetcher.calls == 1
    assert coordinator.is_refreshing is False


@pytest.mark.asyncio
async def test_failed_refresh_keeps_previous_snapshot(db_path, clock):
    put_snapshot(db_path, CollectionType.ISSUES, [{"id": "old"}], timestamp=BASE_TIME_MS)
    coordinator = _coordinator(db_path, clock, FakeFetcher(error=GraphQLError("Bad credentials")))
    progress = coordinator.broadcaster.subscribe()

    with pytest.raises(GraphQLError):
        await coordinator.get_collection(force_refresh=True)

    assert get_snapshot(db_path, CollectionType.ISSUES).data == [{"id": "old"}]
    steps = []
    while not progress.empty():
        steps.append(progress.get_nowait().step)
    assert steps[0] == "Fetching GitHub data"
    assert steps[-1] == "Refresh failed"


@pytest.mark.asyncio
async def test_abort_cancels_in_flight_refresh(db_path, clock, caplog):
    fetcher = FakeFetcher(pages=[[_issue_node(i) for i in range(4)]])
    fetcher.gate = asyncio.Event()
    coordinator = _coordinator(db_path, clock, fetcher, batch_size=2)
    progress = coordinator.broadcaster.subscribe()

    assert coordinator.abort() is False
    task = asyncio.create_task(coordinator.get_collection())
    await asyncio.sleep(0)
    assert coordinator.abort() is True
    fetcher.gate.set()

    with caplog.at_level(logging.WARNING, logger="src.refresh"):
        with pytest.raises(RefreshCancelled):
            await task

    assert get_snapshot(db_path, CollectionType.ISSUES) is None
    steps = []
    while not progress.empty():
        steps.append(progress.get_nowait().step)
    assert steps[-1] == "Refresh aborted"
    refresh_logs = [record for record in caplog.records if record.name == "src.refresh"]
    assert any(record.levelno == logging.WARNING for record in refresh_logs)
    assert not any(record.levelno >= logging.ERROR for record in refresh_logs)


@pytest.mark.asyncio
async def test_progress_reports_milestones_and_completion(db_path, clock):
    coordinator = _coordinator(db_path, clock, FakeFetcher())
    progress = coordinator.broadcaster.subscribe()

    await coordinator.get_collection()

    steps = []
    while not progress.empty():
        steps.append(progress.get_nowait().step)
    assert steps[:4] == [
        "Fetching GitHub data",
        "Fetching GitHub data (page 1)",
        "Processing items for AI extraction",
        "Filtering complete",
    ]
    assert "Processing AI analysis (2/2)" in steps
    assert steps[-2:] == ["Saving to cache", "Complete"]


def test_cache_info_reports_freshness(db_path, clock):
    coordinator = _coordinator(db_path, clock, FakeFetcher())
    assert coordinator.cache_info() == {"lastUpdated": None, "isCached": False}

    snapshot = put_snapshot(db_path, CollectionType.ISSUES, [], timestamp=BASE_TIME_MS)
    assert coordinator.cache_info() == {"lastUpdated": snapshot.last_updated, "isCached": True}

    clock.advance(hours=24, minutes=1)
    assert coordinator.cache_info()["isCached"] is False
