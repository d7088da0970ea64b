"""Assembly of enriched, JSON-ready records from source records."""

from typing import Any

from src.github.parsing import Comment, SourceRecord, sort_newest_first


def last_comment(comments: list[Comment]) -> dict[str, Any] | None:
    """Return `{createdAt, author{login,name}}` for the newest authored comment."""
    authored = sort_newest_first([comment for comment in comments if comment.author is not None])
    if not authored:
        return None
    newest = authored[0]
    return {
        "createdAt": newest.created_at,
        "author": {"login": newest.author.login, "name": newest.author.name},
    }


def needs_response(latest: dict[str, Any] | None, assignee_logins: list[str]) -> bool:
    """True when the newest comment was written by someone outside the assignees."""
    if latest is None:
        return False
    return latest["author"]["login"] not in set(assignee_logins)


def base_record(record: SourceRecord, comments: list[Comment]) -> dict[str, Any]:
    latest = last_comment(comments)
    return {
        "id": record.id,
        "title": record.title,
        "url": record.url,
        "body": record.body,
        "createdAt": record.created_at,
        "updatedAt": record.updated_at,
        "labels": [dict(label) for label in record.labels],
        "assignees": [dict(assignee) for assignee in record.assignees],
        "lastComment": latest,
        "needsResponse": needs_response(latest, record.assignee_logins),
    }


def roadmap_record(
    record: SourceRecord,
    comments: list[Comment],
    *,
    extracted_date: str | None,
    extracted_eta: dict[str, str] | None,
) -> dict[str, Any]:
    item = base_record(record, comments)
    item.update(
        {
            "lastEditedAt": record.last_edited_at,
            "status": record.status,
            "extractedDate": extracted_date,
            "extractedEta": extracted_eta,
        }
    )
    return item


def issue_record(
    record: SourceRecord,
    comments: list[Comment],
    *,
    ai_summary: dict[str, Any] | None,
) -> dict[str, Any]:
    item = base_record(record, comments)
    item.update(
        {
            "state": record.state,
            "comments": max(record.comment_count, len(comments)),
            "aiSummary": ai_summary,
        }
    )
    return item
