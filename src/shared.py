"""
src/shared.py
Shared utilities for the Roadboard pipeline.
Exports: CollectionType, parse_collection_type, EXTRACTION_FAILED, now_ms, short_title
"""

from enum import Enum
import time

EXTRACTION_FAILED = "extraction failed"

_COLLECTION_ALIASES = {"aks": "issues", "aks-issues": "issues"}


class CollectionType(str, Enum):
    """Collections mirrored and enriched by the service."""

    ROADMAP = "roadmap"
    ISSUES = "issues"


def parse_collection_type(value: str | None) -> CollectionType:
    """
    Resolve a query-string collection name, accepting legacy aliases.

    Args:
        value: Raw `type` query value; empty means roadmap.
    Returns:
        Matching CollectionType.
    Raises:
        ValueError: Unknown collection name.
    """
    name = (value or "roadmap").strip().lower()
    return CollectionType(_COLLECTION_ALIASES.get(name, name))


def now_ms() -> int:
    return int(time.time() * 1000)


def short_title(title: str, limit: int = 50) -> str:
    """Return a log-friendly title prefix."""
    return title if len(title) <= limit else f"{title[:limit]}..."
