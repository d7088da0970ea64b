"""Dataclasses used by the SQLite cache layer."""

from dataclasses import dataclass
from typing import Any


@dataclass
class CacheEntry:
    """One inference attempt persisted to `inference_cache`."""

    key: str
    result: str | None
    timestamp: int
    failed: bool = False

    def age_ms(self, now: int) -> int:
        return now - self.timestamp


@dataclass
class CollectionSnapshot:
    """Wholesale copy of one enriched collection."""

    data: list[dict[str, Any]]
    timestamp: int
    last_updated: str

    def is_fresh(self, now: int, ttl_ms: int) -> bool:
        return now - self.timestamp < ttl_ms
