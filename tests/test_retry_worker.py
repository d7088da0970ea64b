"""Unit tests for src/retry_worker.py: dedup, backoff and draining."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.retry_worker import RetryQueue, RetryWorker
from src.shared import EXTRACTION_FAILED


def _queue(clock, **kwargs):
    options = {"base_delay_ms": 60_000, "initial_delay_ms": 60_000, "max_attempts": 3, "now": clock}
    options.update(kwargs)
    return RetryQueue(**options)


def _gateway(*results, cooling_down=False):
    gateway = AsyncMock()
    gateway.timeline_cooling_down = MagicMock(return_value=cooling_down)
    if results:
        gateway.extract_timeline.side_effect = list(results)
    return gateway


def test_add_deduplicates_by_fingerprint(clock):
    queue = _queue(clock)

    assert queue.add("Add GPU support", "body") is True
    assert queue.add("Add GPU support", "body") is False
    assert queue.add("Add GPU support", "edited body") is True
    assert len(queue) == 2


def test_take_due_respects_initial_delay_and_limit(clock):
    queue = _queue(clock)
    for index in range(4):
        queue.add(f"Item {index}", "body")

    assert queue.take_due(3) == []
    clock.advance(seconds=60)
    due = queue.take_due(3)

    assert [item.title for item in due] == ["Item 0", "Item 1", "Item 2"]
    assert len(queue) == 1


def test_requeue_backs_off_exponentially_then_abandons(clock):
    queue = _queue(clock)
    queue.add("Flaky", "body")
    clock.advance(seconds=60)
    item = queue.take_due(1)[0]

    assert queue.requeue(item) is True
    assert item.next_attempt_at == clock() + 60_000
    clock.advance(seconds=60)
    item = queue.take_due(1)[0]

    assert queue.requeue(item) is True
    assert item.next_attempt_at == clock() + 120_000
    clock.advance(seconds=120)
    item = queue.take_due(1)[0]

    assert queue.requeue(item) is False
    assert len(queue) == 0
    assert queue.status() == {
        "pending": 0,
        "abandoned": 1,
        "items": [],
        "abandonedItems": [{"title": "Flaky", "attempts": 3}],
    }


def test_repeatedly_abandoned_item_is_counted_but_recorded_once(clock):
    queue = _queue(clock, initial_delay_ms=0, max_attempts=1)

    for _ in range(1000):
        queue.add("Flaky item", "same body")
        queue.requeue(queue.take_due(1)[0])

    status = queue.status()
    assert status["abandoned"] == 1000
    assert status["abandonedItems"] == [{"title": "Flaky item", "attempts": 1}]


def test_abandoned_record_keeps_only_most_recent_items(clock):
    queue = _queue(clock, initial_delay_ms=0, max_attempts=1, abandoned_limit=2)

    for index in range(5):
        queue.add(f"Item {index}", "body")
        queue.requeue(queue.take_due(1)[0])

    status = queue.status()
    assert status["abandoned"] == 5
    assert [entry["title"] for entry in status["abandonedItems"]] == ["Item 3", "Item 4"]


@pytest.mark.asyncio
async def test_run_once_drains_successes_and_requeues_failures(clock):
    queue = _queue(clock, initial_delay_ms=0)
    queue.add("Works", "body")
    queue.add("Still failing", "body")
    queue.add("Raises", "body")
    gateway = _gateway("Q3 2025", EXTRACTION_FAILED, RuntimeError("boom"))
    worker = RetryWorker(queue, gateway, batch=3, item_delay_seconds=0)

    succeeded = await worker.run_once()

    assert succeeded == 1
    assert queue.status()["items"] == [
        {"title": "Still failing", "attempts": 1},
        {"title": "Raises", "attempts": 1},
    ]


@pytest.mark.asyncio
async def test_cooling_down_item_is_postponed_without_spending_an_attempt(clock):
    queue = _queue(clock, initial_delay_ms=60_000)
    queue.add("Recently failed", "body")
    clock.advance(seconds=60)
    gateway = _gateway(cooling_down=True)

    assert await RetryWorker(queue, gateway, item_delay_seconds=0).run_once() == 0

    gateway.extract_timeline.assert_not_called()
    assert queue.status()["items"] == [{"title": "Recently failed", "attempts": 0}]
    assert queue.take_due(1) == []
    clock.advance(seconds=60)
    assert [item.title for item in queue.take_due(1)] == ["Recently failed"]


@pytest.mark.asyncio
async def test_run_once_with_nothing_due_is_a_noop(clock):
    queue = _queue(clock)
    queue.add("Later", "body")
    gateway = _gateway()

    assert await RetryWorker(queue, gateway, item_delay_seconds=0).run_once() == 0
    gateway.extract_timeline.assert_not_called()


@pytest.mark.asyncio
async def test_no_timeline_result_counts_as_success(clock):
    queue = _queue(clock, initial_delay_ms=0)
    queue.add("Quiet", "body")
    gateway = _gateway(None)

    assert await RetryWorker(queue, gateway, item_delay_seconds=0).run_once() == 1
    assert len(queue) == 0
