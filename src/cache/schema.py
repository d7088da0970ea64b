"""SQLite schema initialization for the Roadboard cache store."""

import sqlite3
from pathlib import Path

from src.shared import CollectionType


def prepare_db_path(db_path: str) -> Path:
    """Create parent directories for file-backed SQLite paths."""
    path = Path(db_path)
    if str(path) != ":memory:":
        path.parent.mkdir(parents=True, exist_ok=True)
    return path


def snapshot_table(collection: CollectionType) -> str:
    """Return the snapshot table name for one collection."""
    return f"{collection.value}_snapshot"


def init_cache_db(db_path: str) -> None:
    """
    Create cache tables and indexes when absent.

    Args:
        db_path: SQLite file path.
    Side effects:
        Creates SQLite file, schema, and indexes.
    Raises:
        sqlite3.Error: Store cannot be opened or initialized.
    """
    path = prepare_db_path(db_path)
    with sqlite3.connect(path) as conn:
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS inference_cache (
                cache_key TEXT PRIMARY KEY,
                result TEXT,
                timestamp INTEGER NOT NULL,
                failed INTEGER NOT NULL DEFAULT 0
            )
            """
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_inference_timestamp ON inference_cache(timestamp)"
        )
        for collection in CollectionType:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {snapshot_table(collection)} (
                    id INTEGER PRIMARY KEY,
                    data TEXT NOT NULL,
                    timestamp INTEGER NOT NULL,
                    last_updated TEXT NOT NULL
                )
                """
            )
