"""Read/write helpers for the per-call inference cache table."""

import logging
import sqlite3

from src.cache.types import CacheEntry
from src.shared import now_ms

logger = logging.getLogger(__name__)


def get_inference(db_path: str, key: str) -> CacheEntry | None:
    """Return the cached inference entry for `key`, or None when absent."""
    with sqlite3.connect(db_path) as conn:
        row = conn.execute(
            "SELECT result, timestamp, failed FROM inference_cache WHERE cache_key = ?",
            (key,),
        ).fetchone()
    if row is None:
        return None
    result, timestamp, failed = row
    return CacheEntry(key=key, result=result, timestamp=int(timestamp), failed=bool(failed))


def put_inference(
    db_path: str,
    key: str,
    result: str | None,
    failed: bool = False,
    *,
    timestamp: int | None = None,
) -> None:
    """Upsert one inference attempt; the latest write for a key wins."""
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            """
            INSERT INTO inference_cache (cache_key, result, timestamp, failed)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(cache_key) DO UPDATE SET
                result = excluded.result,
                timestamp = excluded.timestamp,
                failed = excluded.failed
            """,
            (key, result, timestamp if timestamp is not None else now_ms(), 1 if failed else 0),
        )


def delete_inference_older_than(db_path: str, cutoff_ms: int) -> int:
    """
    Delete inference entries written before `cutoff_ms`.

    Returns:
        Number of rows removed.
    """
    with sqlite3.connect(db_path) as conn:
        cursor = conn.execute("DELETE FROM inference_cache WHERE timestamp < ?", (cutoff_ms,))
        removed = cursor.rowcount
    if removed:
        logger.info("Swept %d inference cache entries older than %d.", removed, cutoff_ms)
    return removed
