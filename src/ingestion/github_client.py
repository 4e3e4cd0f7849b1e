"""
Issue-tracker client (GitHub REST + GraphQL).

Read side feeds the sync orchestrator:
- fetch_labeled_issues: every issue carrying the given labels, walked
  with GraphQL cursor pagination in an explicit loop
- list_issues_since: issues updated since a watermark (REST, paged)
- get_issue: a single issue by number

Write side carries the moderation side effects: add_labels, add_comment
and close_issue.

Read failures are raised as FetchError; write failures surface as
HTTPClientError so the caller can decide whether they are fatal.
"""

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from src.ingestion.http_client import HTTPClient, HTTPClientError, RetryConfig
from src.ingestion.schemas import IssuePayload

logger = logging.getLogger(__name__)

LABELED_ISSUES_QUERY = """
query ($owner: String!, $name: String!, $labels: [String!], $first: Int!, $after: String) {
  repository(owner: $owner, name: $name) {
    issues(labels: $labels, first: $first, after: $after) {
      nodes {
        id
        number
        title
        url
        body
        createdAt
        updatedAt
        author {
          login
          avatarUrl
          url
        }
        labels(first: 20) {
          nodes {
            name
          }
        }
      }
      pageInfo {
        hasNextPage
        endCursor
      }
    }
  }
}
"""


class FetchError(Exception):
    """The upstream source could not be read."""

    def __init__(self, message: str, source: str | None = None):
        super().__init__(message)
        self.source = source


def _format_since(since: datetime) -> str:
    if since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)
    return since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class GitHubClient:
    """
    Authenticated GitHub API client.

    Must be used as an async context manager; the underlying HTTP
    connection pool lives for the duration of the block.

    Example:
        async with GitHubClient(token) as github:
            issues = await github.fetch_labeled_issues("vme-im", "vme-content", ["收录"])
    """

    def __init__(
        self,
        token: str | None = None,
        api_url: str = "https://api.github.com",
        retry_config: RetryConfig | None = None,
        timeout: float = 30.0,
    ) -> None:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "vme-content-pipeline",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self.api_url = api_url.rstrip("/")
        self._http = HTTPClient(
            retry_config=retry_config or RetryConfig(),
            timeout=timeout,
            base_url=self.api_url,
            headers=headers,
        )
        self._entered = False

    async def __aenter__(self) -> "GitHubClient":
        await self._http.__aenter__()
        self._entered = True
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self._entered = False
        await self._http.__aexit__(exc_type, exc_val, exc_tb)

    def _client(self) -> HTTPClient:
        if not self._entered:
            raise RuntimeError("GitHubClient must be used as async context manager")
        return self._http

    # ── Read side ───────────────────────────────────────────

    async def graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """Run a GraphQL query and return its `data` object."""
        response = await self._client().post("/graphql", json_body={
            "query": query,
            "variables": variables,
        })
        payload = response.json()
        if payload.get("errors"):
            messages = "; ".join(e.get("message", "unknown") for e in payload["errors"])
            raise FetchError(f"GraphQL error: {messages}")
        return payload.get("data") or {}

    async def fetch_labeled_issues(
        self,
        owner: str,
        repo: str,
        labels: list[str],
        page_size: int = 100,
    ) -> list[IssuePayload]:
        """
        Fetch every issue carrying any of `labels`.

        Pages through the connection with an explicit cursor until
        `hasNextPage` is false.

        Raises:
            FetchError: the repository could not be read
        """
        source = f"{owner}/{repo}"
        issues: list[IssuePayload] = []
        cursor: str | None = None
        pages = 0

        try:
            while True:
                data = await self.graphql(LABELED_ISSUES_QUERY, {
                    "owner": owner,
                    "name": repo,
                    "labels": labels,
                    "first": page_size,
                    "after": cursor,
                })
                repository = data.get("repository")
                if repository is None:
                    raise FetchError(f"Repository {source} not found", source=source)

                connection = repository["issues"]
                issues.extend(IssuePayload.from_graphql(node) for node in connection["nodes"])
                pages += 1

                page_info = connection["pageInfo"]
                if not (page_info.get("hasNextPage") and page_info.get("endCursor")):
                    break
                cursor = page_info["endCursor"]
        except FetchError as e:
            e.source = e.source or source
            raise
        except (HTTPClientError, httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            raise FetchError(f"Failed to fetch issues from {source}: {e}", source=source) from e

        logger.info(f"Fetched {len(issues)} labeled issues from {source} in {pages} pages")
        return issues

    async def list_issues_since(
        self,
        owner: str,
        repo: str,
        labels: list[str],
        since: datetime,
        page_size: int = 100,
    ) -> list[IssuePayload]:
        """
        List issues (open and closed) updated at or after `since`.

        Pull requests returned by the issues endpoint are skipped.

        Raises:
            FetchError: the repository could not be read
        """
        source = f"{owner}/{repo}"
        params: dict[str, Any] = {
            "state": "all",
            "since": _format_since(since),
            "per_page": page_size,
        }
        if labels:
            params["labels"] = ",".join(labels)

        issues: list[IssuePayload] = []
        page = 1
        try:
            while True:
                response = await self._client().get(
                    f"/repos/{owner}/{repo}/issues",
                    params={**params, "page": page},
                )
                batch = response.json()
                if not isinstance(batch, list):
                    raise FetchError(f"Unexpected issues payload from {source}", source=source)

                for raw in batch:
                    issue = IssuePayload.from_rest(raw)
                    if not issue.is_pull_request:
                        issues.append(issue)

                if len(batch) < page_size:
                    break
                page += 1
        except FetchError:
            raise
        except (HTTPClientError, httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            raise FetchError(f"Failed to list issues from {source}: {e}", source=source) from e

        logger.info(f"Found {len(issues)} issues updated since {params['since']} in {source}")
        return issues

    async def get_issue(self, owner: str, repo: str, number: int) -> IssuePayload:
        """Fetch one issue by number."""
        source = f"{owner}/{repo}"
        try:
            response = await self._client().get(f"/repos/{owner}/{repo}/issues/{number}")
            return IssuePayload.from_rest(response.json())
        except (HTTPClientError, httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            raise FetchError(f"Failed to fetch {source}#{number}: {e}", source=source) from e

    # ── Write side ──────────────────────────────────────────

    async def add_labels(self, owner: str, repo: str, number: int, labels: list[str]) -> None:
        await self._client().post(
            f"/repos/{owner}/{repo}/issues/{number}/labels",
            json_body={"labels": labels},
        )
        logger.info(f"Labeled {owner}/{repo}#{number} with {labels}")

    async def add_comment(self, owner: str, repo: str, number: int, body: str) -> None:
        await self._client().post(
            f"/repos/{owner}/{repo}/issues/{number}/comments",
            json_body={"body": body},
        )

    async def close_issue(self, owner: str, repo: str, number: int) -> None:
        await self._client().patch(
            f"/repos/{owner}/{repo}/issues/{number}",
            json_body={"state": "closed"},
        )
        logger.info(f"Closed {owner}/{repo}#{number}")
