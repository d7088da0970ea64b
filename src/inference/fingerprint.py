"""Deterministic cache keys for inference calls."""

import hashlib
import re

_SLUG_RE = re.compile(r"[^a-zA-Z0-9]+")
FIELD_SEPARATOR = "\x1f"


def title_slug(title: str, limit: int = 30) -> str:
    return _SLUG_RE.sub("_", title).strip("_")[:limit]


def fingerprint(task: str, title: str, *fields: str) -> str:
    """
    Build the cache key for one inference task.

    The digest covers the task name, the title, and every identifying field in full,
    so any content change yields a new key. The readable prefix only aids debugging.

    Args:
        task: Extraction task name (timeline, eta, analysis).
        title: Record title.
        fields: Remaining identifying inputs, in a fixed order per task.
    Returns:
        Key of the form `task:slug:hexdigest`.
    """
    hasher = hashlib.sha256()
    for part in (task, title, *fields):
        hasher.update(part.encode("utf-8"))
        hasher.update(FIELD_SEPARATOR.encode("utf-8"))
    return f"{task}:{title_slug(title)}:{hasher.hexdigest()[:32]}"
