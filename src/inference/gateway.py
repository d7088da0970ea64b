"""
Inference gateway: cache-or-call policy around the three extraction tasks.
Exports: InferenceGateway, maintainer_comments, match_source_comment
"""

import json
import logging
from typing import Any, Awaitable, Callable

from src.cache_store import get_inference, put_inference
from src.github.parsing import Comment, sort_newest_first
from src.inference.fingerprint import fingerprint
from src.inference.llm import InferenceClient
from src.inference.parsing import parse_analysis, parse_eta, parse_timeline
from src.inference.prompts import (
    ANALYSIS_MAX_TOKENS,
    ETA_MAX_TOKENS,
    TIMELINE_MAX_TOKENS,
    analysis_messages,
    eta_messages,
    timeline_messages,
)
from src.shared import EXTRACTION_FAILED, now_ms, short_title

logger = logging.getLogger(__name__)

PLACEHOLDER_AUTHOR = "Maintainer Team"
PLACEHOLDER_URL = "#"
SOURCE_MATCH_PREFIX = 100

_MISS = object()


def maintainer_comments(comments: list[Comment], assignee_logins: list[str]) -> list[Comment]:
    """Keep non-empty comments written by the record's assignees, newest first."""
    logins = set(assignee_logins)
    kept = [
        comment
        for comment in comments
        if comment.author is not None and comment.author.login in logins and comment.body.strip()
    ]
    return sort_newest_first(kept)


def match_source_comment(text: str, comments: list[Comment]) -> Comment | None:
    """
    Find the comment an extracted snippet came from.

    Matches case-insensitively when the comment contains the snippet, or the snippet
    contains the comment's opening characters. Best effort: shared boilerplate can misattribute.
    """
    needle = text.lower()
    for comment in comments:
        body = comment.body.lower()
        if needle in body or body[:SOURCE_MATCH_PREFIX] in needle:
            return comment
    return None


class InferenceGateway:
    """Applies the cache-or-call policy and failure bookkeeping for model calls."""

    def __init__(
        self,
        db_path: str,
        client: InferenceClient,
        *,
        success_ttl_ms: int = 24 * 60 * 60 * 1000,
        failure_cooldown_ms: int = 60 * 1000,
        now: Callable[[], int] = now_ms,
    ) -> None:
        self.db_path = db_path
        self.client = client
        self.success_ttl_ms = success_ttl_ms
        self.failure_cooldown_ms = failure_cooldown_ms
        self.now = now

    def _cooling_down(self, key: str) -> bool:
        entry = get_inference(self.db_path, key)
        return entry is not None and entry.failed and entry.age_ms(self.now()) < self.failure_cooldown_ms

    def timeline_cooling_down(self, title: str, body: str) -> bool:
        """True when the timeline call for this input failed within the cooldown window."""
        return self._cooling_down(fingerprint("timeline", title, body))

    def _cached(self, key: str, title: str, failed_value: Any) -> Any:
        """Return the cached value, `failed_value` inside the cooldown, or `_MISS` to call out."""
        entry = get_inference(self.db_path, key)
        if entry is None:
            return _MISS
        age = entry.age_ms(self.now())
        if age >= self.success_ttl_ms:
            return _MISS
        if not entry.failed:
            logger.info("Cache hit for %s.", short_title(title))
            return entry.result
        if age < self.failure_cooldown_ms:
            logger.warning("Recent failure for %s (will retry later).", short_title(title))
            return failed_value
        logger.info("Retrying failed extraction for %s.", short_title(title))
        return _MISS

    async def _cache_or_call(
        self,
        key: str,
        title: str,
        call: Callable[[], Awaitable[str | None]],
        failed_value: Any,
    ) -> Any:
        """
        Resolve one extraction through the cache.

        Returns:
            Cached or fresh result string, or failed_value.
        """
        cached = self._cached(key, title, failed_value)
        if cached is not _MISS:
            return cached
        try:
            result = await call()
        except Exception:
            logger.exception("Inference failed for %s.", short_title(title))
            put_inference(self.db_path, key, None, True, timestamp=self.now())
            return failed_value
        put_inference(self.db_path, key, result, False, timestamp=self.now())
        return result

    async def extract_timeline(self, title: str, body: str) -> str | None:
        """
        Extract the customer availability timeline from an issue body.

        Returns:
            Timeline text, None when absent or body is empty, or EXTRACTION_FAILED.
        """
        if not body or not body.strip():
            return None
        key = fingerprint("timeline", title, body)

        async def call() -> str | None:
            logger.info("AI timeline extraction for %s.", short_title(title))
            reply = await self.client.complete(timeline_messages(title, body), max_tokens=TIMELINE_MAX_TOKENS)
            return parse_timeline(reply)

        result = await self._cache_or_call(key, title, call, EXTRACTION_FAILED)
        return result

    async def extract_eta(
        self,
        title: str,
        comments: list[Comment],
        assignee_logins: list[str],
    ) -> dict[str, str] | None:
        """
        Extract the latest maintainer ETA with attribution.

        Returns:
            `{date, author, commentText, url}`, or None when absent or on failure.
        """
        sources = maintainer_comments(comments, assignee_logins)
        if not sources:
            return None
        key = fingerprint("eta", title, *(f"{c.id}\x1e{c.body}" for c in sources))

        async def call() -> str | None:
            logger.info("ETA extraction for %s (%d comments).", short_title(title), len(sources))
            reply = await self.client.complete(eta_messages(title, sources), max_tokens=ETA_MAX_TOKENS)
            parsed = parse_eta(reply)
            if parsed is None:
                return None
            source = match_source_comment(parsed.text or "", sources)
            if source is None:
                logger.warning("No source comment matched ETA text for %s.", short_title(title))
            eta = {
                "date": parsed.date,
                "author": source.author.display_name if source and source.author else PLACEHOLDER_AUTHOR,
                "commentText": parsed.text,
                "url": source.url if source else (sources[0].url or PLACEHOLDER_URL),
            }
            return json.dumps(eta)

        result = await self._cache_or_call(key, title, call, None)
        return _load_json(result, title)

    async def analyze_issue(
        self,
        title: str,
        body: str,
        comments: list[Comment],
        assignee_logins: list[str],
    ) -> dict[str, Any] | None:
        """
        Summarize status, next steps and classification for an open issue.

        Returns:
            `{currentStatus, nextSteps, analysis{...}}`, or None when there is nothing to analyze or on failure.
        """
        sources = maintainer_comments(comments, assignee_logins)
        if not body.strip() and not sources:
            return None
        key = fingerprint("analysis", title, body, *(f"{c.id}\x1e{c.body}" for c in sources))

        async def call() -> str | None:
            logger.info("Issue analysis for %s.", short_title(title))
            reply = await self.client.complete(
                analysis_messages(title, body, sources), max_tokens=ANALYSIS_MAX_TOKENS
            )
            return parse_analysis(reply).model_dump_json()

        result = await self._cache_or_call(key, title, call, None)
        return _load_json(result, title)


def _load_json(result: str | None, title: str) -> Any:
    if not result:
        return None
    try:
        return json.loads(result)
    except ValueError:
        logger.warning("Discarding unreadable cached result for %s.", short_title(title))
        return None
