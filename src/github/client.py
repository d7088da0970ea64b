"""Async GitHub GraphQL client built on httpx."""

import logging
from typing import Any, Callable

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class GraphQLError(RuntimeError):
    """Raised when the graph service cannot answer a query."""


class GraphQLClient:
    """Minimal GraphQL POST client; one instance per process."""

    def __init__(
        self,
        url: str,
        token_provider: Callable[[], str],
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.url = url
        self._token_provider = token_provider
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Run one GraphQL document and return its `data` object.

        Args:
            query: GraphQL document.
            variables: Query variables.
        Returns:
            The response `data` dict.
        Raises:
            GraphQLError: Missing credential, transport failure, non-2xx status, or `errors` payload.
        """
        try:
            token = self._token_provider()
        except RuntimeError as exc:
            raise GraphQLError(str(exc)) from exc
        try:
            response = await self._http.post(
                self.url,
                json={"query": query, "variables": variables or {}},
                headers={"Authorization": f"bearer {token}", "Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise GraphQLError(f"GraphQL transport error: {exc}") from exc
        if response.status_code >= 400:
            raise GraphQLError(f"GraphQL HTTP {response.status_code}: {response.text[:200]}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise GraphQLError("GraphQL response was not JSON.") from exc
        errors = payload.get("errors") if isinstance(payload, dict) else None
        if errors:
            messages = "; ".join(str(err.get("message", err)) for err in errors if isinstance(err, dict))
            raise GraphQLError(f"GraphQL errors: {messages or errors}")
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise GraphQLError("GraphQL response missing data.")
        return data
