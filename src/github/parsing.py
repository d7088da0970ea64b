"""Normalization of raw GraphQL nodes into source records."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def safe_dict(value: Any) -> dict[str, Any]:
    """Return dict value or empty dict."""
    return value if isinstance(value, dict) else {}


def safe_nodes(value: Any) -> list[dict[str, Any]]:
    """Return the `nodes` list of a GraphQL connection, skipping null entries."""
    nodes = safe_dict(value).get("nodes")
    if not isinstance(nodes, list):
        return []
    return [node for node in nodes if isinstance(node, dict)]


@dataclass
class Author:
    login: str
    name: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.login


@dataclass
class Comment:
    """One issue comment; `author` is None for deleted accounts."""

    id: str
    created_at: str
    body: str
    url: str
    author: Author | None = None


@dataclass
class CommentPage:
    comments: list[Comment]
    has_next_page: bool = False
    end_cursor: str | None = None
    total_count: int | None = None


@dataclass
class SourceRecord:
    """Normalized issue shared by the roadmap and issue collections."""

    id: str
    title: str
    url: str
    body: str
    created_at: str
    updated_at: str
    last_edited_at: str | None = None
    state: str = ""
    status: str = "Unknown"
    labels: list[dict[str, str]] = field(default_factory=list)
    assignees: list[dict[str, Any]] = field(default_factory=list)
    comments: CommentPage = field(default_factory=lambda: CommentPage(comments=[]))

    @property
    def assignee_logins(self) -> list[str]:
        return [str(a.get("login")) for a in self.assignees if a.get("login")]

    @property
    def comment_count(self) -> int:
        if self.comments.total_count is not None:
            return self.comments.total_count
        return len(self.comments.comments)


def parse_comment(node: dict[str, Any]) -> Comment:
    author_data = safe_dict(node.get("author"))
    author = None
    if author_data.get("login"):
        author = Author(login=str(author_data["login"]), name=author_data.get("name") or None)
    return Comment(
        id=str(node.get("id") or ""),
        created_at=str(node.get("createdAt") or ""),
        body=str(node.get("body") or ""),
        url=str(node.get("url") or ""),
        author=author,
    )


def parse_comment_page(connection: Any) -> CommentPage:
    """Parse a GraphQL comments connection (nodes + pageInfo)."""
    data = safe_dict(connection)
    page_info = safe_dict(data.get("pageInfo"))
    total = data.get("totalCount")
    return CommentPage(
        comments=[parse_comment(node) for node in safe_nodes(data)],
        has_next_page=bool(page_info.get("hasNextPage")),
        end_cursor=page_info.get("endCursor"),
        total_count=int(total) if isinstance(total, int) else None,
    )


def parse_issue(node: dict[str, Any], *, status: str = "Unknown") -> SourceRecord:
    """Normalize one GraphQL Issue node. Missing fields become empty values."""
    return SourceRecord(
        id=str(node.get("id") or ""),
        title=str(node.get("title") or "").strip(),
        url=str(node.get("url") or ""),
        body=str(node.get("body") or ""),
        created_at=str(node.get("createdAt") or ""),
        updated_at=str(node.get("updatedAt") or ""),
        last_edited_at=node.get("lastEditedAt"),
        state=str(node.get("state") or ""),
        status=status,
        labels=[
            {"name": str(label.get("name") or ""), "color": str(label.get("color") or "")}
            for label in safe_nodes(node.get("labels"))
        ],
        assignees=[
            {
                "login": str(assignee.get("login") or ""),
                "name": assignee.get("name"),
                "avatarUrl": str(assignee.get("avatarUrl") or ""),
            }
            for assignee in safe_nodes(node.get("assignees"))
        ],
        comments=parse_comment_page(node.get("comments")),
    )


def project_item_status(item: dict[str, Any]) -> str:
    """Return the single-select value of the board's `Status` field, or 'Unknown'."""
    for value in safe_nodes(item.get("fieldValues")):
        if safe_dict(value.get("field")).get("name") == "Status" and value.get("name"):
            return str(value["name"])
    return "Unknown"


def parse_project_item(item: dict[str, Any]) -> SourceRecord | None:
    """Normalize a project board item; None when it has no issue content."""
    content = item.get("content")
    if not isinstance(content, dict) or not content:
        return None
    return parse_issue(content, status=project_item_status(item))


def _timestamp_key(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def sort_newest_first(comments: list[Comment]) -> list[Comment]:
    """Return comments ordered by creation time, newest first; unparseable times sort last."""
    return sorted(comments, key=lambda comment: _timestamp_key(comment.created_at), reverse=True)
