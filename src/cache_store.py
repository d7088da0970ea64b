"""
src/cache_store.py
Facade for the Roadboard SQLite cache helpers.
Exports: init_cache_db, get_inference, put_inference, delete_inference_older_than, get_snapshot, put_snapshot
"""

from src.cache.inference import delete_inference_older_than, get_inference, put_inference
from src.cache.schema import init_cache_db
from src.cache.snapshots import get_snapshot, put_snapshot
from src.cache.types import CacheEntry, CollectionSnapshot

__all__ = [
    "CacheEntry",
    "CollectionSnapshot",
    "init_cache_db",
    "get_inference",
    "put_inference",
    "delete_inference_older_than",
    "get_snapshot",
    "put_snapshot",
]
