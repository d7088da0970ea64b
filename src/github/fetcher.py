"""
Paged retrieval of project board items, open issues, and issue comments.
Exports: SourceFetcher
"""

import asyncio
import logging
from typing import Any, AsyncIterator

from src.github.client import GraphQLClient, GraphQLError
from src.github.parsing import Comment, parse_comment_page, safe_dict
from src.github.queries import ISSUE_COMMENTS_QUERY, OPEN_ISSUES_QUERY, PROJECT_ITEMS_QUERY

logger = logging.getLogger(__name__)

PROJECT_PAGE_SIZE = 50
ISSUES_PAGE_SIZE = 50
INLINE_COMMENTS = 5


class SourceFetcher:
    """Wraps the graph service paging contract for the three query shapes."""

    def __init__(
        self,
        client: GraphQLClient,
        *,
        project_org: str,
        project_number: int,
        issues_owner: str,
        issues_name: str,
        project_max_pages: int = 50,
        issues_max_pages: int = 20,
        comment_page_delay: float = 0.1,
    ) -> None:
        self.client = client
        self.project_org = project_org
        self.project_number = project_number
        self.issues_owner = issues_owner
        self.issues_name = issues_name
        self.project_max_pages = project_max_pages
        self.issues_max_pages = issues_max_pages
        self.comment_page_delay = comment_page_delay

    async def fetch_project_items(self) -> AsyncIterator[tuple[int, list[dict[str, Any]]]]:
        """
        Yield `(page_number, raw_item_nodes)` for the project board.

        Stops when the service reports no further pages or after `project_max_pages`.

        Raises:
            GraphQLError: Any page fails or the project is missing.
        """
        cursor: str | None = None
        for page in range(1, self.project_max_pages + 1):
            data = await self.client.execute(
                PROJECT_ITEMS_QUERY,
                {
                    "org": self.project_org,
                    "number": self.project_number,
                    "cursor": cursor,
                    "pageSize": PROJECT_PAGE_SIZE,
                    "inlineComments": INLINE_COMMENTS,
                },
            )
            project = safe_dict(safe_dict(data.get("organization")).get("projectV2"))
            if not project:
                raise GraphQLError("Failed to fetch project data from GitHub API")
            items = safe_dict(project.get("items"))
            yield page, [node for node in items.get("nodes") or [] if isinstance(node, dict)]
            page_info = safe_dict(items.get("pageInfo"))
            cursor = page_info.get("endCursor")
            if not page_info.get("hasNextPage") or not cursor:
                return
        logger.warning("Stopped project item paging at the %d page ceiling.", self.project_max_pages)

    async def fetch_open_issues(self) -> AsyncIterator[tuple[int, list[dict[str, Any]]]]:
        """
        Yield `(page_number, raw_issue_nodes)` for open repository issues.

        Raises:
            GraphQLError: Any page fails or the repository is missing.
        """
        cursor: str | None = None
        for page in range(1, self.issues_max_pages + 1):
            data = await self.client.execute(
                OPEN_ISSUES_QUERY,
                {
                    "owner": self.issues_owner,
                    "name": self.issues_name,
                    "cursor": cursor,
                    "pageSize": ISSUES_PAGE_SIZE,
                    "inlineComments": INLINE_COMMENTS,
                },
            )
            repository = safe_dict(data.get("repository"))
            if not repository:
                raise GraphQLError(
                    f"Failed to fetch issues for {self.issues_owner}/{self.issues_name} from GitHub API"
                )
            issues = safe_dict(repository.get("issues"))
            yield page, [node for node in issues.get("nodes") or [] if isinstance(node, dict)]
            page_info = safe_dict(issues.get("pageInfo"))
            cursor = page_info.get("endCursor")
            if not page_info.get("hasNextPage") or not cursor:
                return
        logger.warning("Stopped issue paging at the %d page ceiling.", self.issues_max_pages)

    async def fetch_all_comments(
        self,
        record_id: str,
        known_comments: list[Comment],
        has_more: bool,
        cursor: str | None,
    ) -> list[Comment]:
        """
        Page the remaining comments of one issue after the inline first page.

        A failed page ends paging and returns what was accumulated.

        Args:
            record_id: GraphQL node id of the issue.
            known_comments: Comments already fetched inline.
            has_more: Whether the inline page reported more pages.
            cursor: End cursor of the inline page.
        Returns:
            All comments in service order.
        """
        all_comments = list(known_comments)
        if not has_more:
            return all_comments
        while has_more:
            try:
                data = await self.client.execute(ISSUE_COMMENTS_QUERY, {"issueId": record_id, "cursor": cursor})
            except GraphQLError:
                logger.exception("Error fetching additional comments for %s; keeping %d.", record_id, len(all_comments))
                break
            page = parse_comment_page(safe_dict(safe_dict(data.get("node")).get("comments")))
            all_comments.extend(page.comments)
            has_more = page.has_next_page and bool(page.end_cursor)
            cursor = page.end_cursor
            logger.info(
                "Fetched additional %d comments for %s. Total: %d",
                len(page.comments),
                record_id,
                len(all_comments),
            )
            if has_more:
                await asyncio.sleep(self.comment_page_delay)
        return all_comments
