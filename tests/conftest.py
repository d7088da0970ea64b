"""Shared pytest fixtures for the Roadboard test suite."""

import pytest

from src.cache_store import init_cache_db
from src.github.parsing import Author, Comment, CommentPage, SourceRecord

BASE_TIME_MS = 1_700_000_000_000


class FakeClock:
    """Injectable epoch-ms clock."""

    def __init__(self, start: int = BASE_TIME_MS) -> None:
        self.value = start

    def __call__(self) -> int:
        return self.value

    def advance(self, *, seconds: float = 0, minutes: float = 0, hours: float = 0) -> None:
        self.value += int((seconds + minutes * 60 + hours * 3600) * 1000)


class FakeInferenceClient:
    """Returns queued replies (or raises queued exceptions) and records every call."""

    def __init__(self, *replies) -> None:
        self.replies = list(replies)
        self.default = "None"
        self.calls: list[list[dict[str, str]]] = []

    async def complete(self, messages, *, max_tokens):
        self.calls.append(messages)
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture(autouse=True)
def _disable_background_loops(monkeypatch):
    """Keep retry worker and sweeper loops off in tests unless explicitly enabled."""
    monkeypatch.setenv("ROADBOARD_BACKGROUND_ENABLED", "false")


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "roadboard.db")
    init_cache_db(path)
    return path


@pytest.fixture
def clock():
    return FakeClock()


def make_comment(login: str | None, body: str, created_at: str, *, url: str = "", comment_id: str = "") -> Comment:
    author = Author(login=login, name=login.title()) if login else None
    return Comment(
        id=comment_id or f"c-{created_at}",
        created_at=created_at,
        body=body,
        url=url or f"https://github.com/o/r/issues/1#{created_at}",
        author=author,
    )


def make_record(
    title: str = "Add GPU support",
    *,
    record_id: str = "I_1",
    body: str = "We plan to ship this in Q3 2025.",
    assignees: tuple[str, ...] = ("maint",),
    comments: list[Comment] | None = None,
    has_next_page: bool = False,
    end_cursor: str | None = None,
    status: str = "Planned",
) -> SourceRecord:
    return SourceRecord(
        id=record_id,
        title=title,
        url=f"https://github.com/o/r/issues/{record_id}",
        body=body,
        created_at="2025-01-01T00:00:00Z",
        updated_at="2025-02-01T00:00:00Z",
        state="OPEN",
        status=status,
        labels=[{"name": "feature", "color": "00ff00"}],
        assignees=[{"login": login, "name": None, "avatarUrl": ""} for login in assignees],
        comments=CommentPage(comments=list(comments or []), has_next_page=has_next_page, end_cursor=end_cursor),
    )
