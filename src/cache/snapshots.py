"""Read/write helpers for whole-collection snapshot tables."""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any

from src.cache.schema import snapshot_table
from src.cache.types import CollectionSnapshot
from src.shared import CollectionType, now_ms

logger = logging.getLogger(__name__)

SNAPSHOT_ROW_ID = 1


def get_snapshot(db_path: str, collection: CollectionType) -> CollectionSnapshot | None:
    """
    Return the stored snapshot for a collection regardless of age.

    Callers decide freshness with `CollectionSnapshot.is_fresh`.
    """
    with sqlite3.connect(db_path) as conn:
        row = conn.execute(
            f"SELECT data, timestamp, last_updated FROM {snapshot_table(collection)} WHERE id = ?",
            (SNAPSHOT_ROW_ID,),
        ).fetchone()
    if row is None:
        return None
    data, timestamp, last_updated = row
    return CollectionSnapshot(data=json.loads(data), timestamp=int(timestamp), last_updated=last_updated)


def put_snapshot(
    db_path: str,
    collection: CollectionType,
    data: list[dict[str, Any]],
    *,
    timestamp: int | None = None,
) -> CollectionSnapshot:
    """
    Replace the collection snapshot in a single-row upsert.

    Args:
        db_path: SQLite path.
        collection: Collection whose snapshot row is replaced.
        data: Enriched records, in display order.
        timestamp: Write time in epoch ms; defaults to now.
    Returns:
        The snapshot as written.
    """
    written_at = timestamp if timestamp is not None else now_ms()
    last_updated = datetime.fromtimestamp(written_at / 1000, tz=timezone.utc).isoformat()
    payload = json.dumps(data, ensure_ascii=True, default=str)
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            f"""
            INSERT INTO {snapshot_table(collection)} (id, data, timestamp, last_updated)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                data = excluded.data,
                timestamp = excluded.timestamp,
                last_updated = excluded.last_updated
            """,
            (SNAPSHOT_ROW_ID, payload, written_at, last_updated),
        )
    logger.info("Saved %s snapshot with %d records.", collection.value, len(data))
    return CollectionSnapshot(data=data, timestamp=written_at, last_updated=last_updated)
