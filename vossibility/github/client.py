"""GitHub REST client used by bulk syncs and live label enrichment."""

from __future__ import annotations

import dataclasses
import typing as typ

import httpx

from .errors import GitHubAPIError, GitHubRateLimitError, GitHubResponseShapeError
from .models import IssuePage, RateLimit, RateLimits

if typ.TYPE_CHECKING:
    from vossibility.storage.repository import Repository

DEFAULT_PER_PAGE = 100

_HTTP_FORBIDDEN = 403
_HTTP_TOO_MANY_REQUESTS = 429
_HTTP_ERROR_STATUS_THRESHOLD = 400


class IssueState:
    """Values of the ``state`` filter of the issue listing."""

    OPEN = "open"
    ALL = "all"


@dataclasses.dataclass(frozen=True, slots=True)
class GitHubConfig:
    """Configuration for the GitHub REST API client.

    An empty token sends anonymous requests, which GitHub rate limits far
    more aggressively.
    """

    token: str = ""
    base_url: str = "https://api.github.com"
    timeout_s: float = 20.0
    user_agent: str = "vossibility-collector/0.1"


class GitHubClient:
    """Minimal asynchronous client for the GitHub endpoints the collector uses."""

    def __init__(
        self,
        config: GitHubConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client with the provided API configuration."""
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout_s)

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {
            "User-Agent": self._config.user_agent,
            "Accept": "application/vnd.github+json",
        }
        if self._config.token.strip():
            headers["Authorization"] = f"Bearer {self._config.token}"
        return headers

    async def _get(
        self, path: str, params: dict[str, typ.Any] | None = None
    ) -> httpx.Response:
        url = f"{self._config.base_url.rstrip('/')}{path}"
        try:
            response = await self._client.get(
                url, params=params, headers=self._headers()
            )
        except httpx.HTTPError as exc:
            raise GitHubAPIError.unreachable(path, exc) from exc
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise _error_for(response, path)
        return response

    async def list_issues_page(
        self,
        repository: Repository,
        *,
        page: int,
        state: str = IssueState.ALL,
        per_page: int = DEFAULT_PER_PAGE,
    ) -> IssuePage:
        """List one page of issues and pull requests, oldest first."""
        path = f"/repos/{repository.user}/{repository.repo}/issues"
        response = await self._get(
            path,
            {
                "state": state,
                "sort": "created",
                "direction": "asc",
                "page": page,
                "per_page": per_page,
            },
        )
        items = _json_list(response, path)
        return IssuePage(items=items, next_page=_next_page(response))

    async def get_pull_request(
        self, repository: Repository, number: int
    ) -> dict[str, typ.Any]:
        """Fetch a pull request by number."""
        path = f"/repos/{repository.user}/{repository.repo}/pulls/{number}"
        return _json_object(await self._get(path), path)

    async def list_issue_labels(
        self, repository: Repository, number: int
    ) -> list[dict[str, typ.Any]]:
        """Fetch the labels of an issue or pull request."""
        path = f"/repos/{repository.user}/{repository.repo}/issues/{number}/labels"
        return _json_list(
            await self._get(path, {"per_page": DEFAULT_PER_PAGE}), path
        )

    async def rate_limits(self) -> RateLimits:
        """Return the core and search rate-limit buckets."""
        path = "/rate_limit"
        payload = _json_object(await self._get(path), path)
        resources = payload.get("resources")
        if not isinstance(resources, dict):
            raise GitHubResponseShapeError.unexpected(path, "a resources object")
        return RateLimits(
            core=_rate_limit(resources.get("core")),
            search=_rate_limit(resources.get("search")),
        )


def _error_for(response: httpx.Response, path: str) -> GitHubAPIError:
    status = response.status_code
    exhausted = response.headers.get("X-RateLimit-Remaining") == "0"
    if status == _HTTP_TOO_MANY_REQUESTS or (status == _HTTP_FORBIDDEN and exhausted):
        reset = response.headers.get("X-RateLimit-Reset")
        reset_at = int(reset) if reset and reset.isdigit() else None
        return GitHubRateLimitError.rate_limited(status, path, reset_at)
    return GitHubAPIError.http_error(status, path)


def _next_page(response: httpx.Response) -> int | None:
    link = response.links.get("next")
    if not link:
        return None
    page = httpx.URL(link["url"]).params.get("page")
    if page is None or not page.isdigit():
        return None
    return int(page)


def _decode(response: httpx.Response, path: str) -> object:
    try:
        return response.json()
    except ValueError as exc:
        raise GitHubResponseShapeError.unexpected(path, "JSON") from exc


def _json_list(response: httpx.Response, path: str) -> list[dict[str, typ.Any]]:
    payload = _decode(response, path)
    if not isinstance(payload, list):
        raise GitHubResponseShapeError.unexpected(path, "a list")
    return [item for item in payload if isinstance(item, dict)]


def _json_object(response: httpx.Response, path: str) -> dict[str, typ.Any]:
    payload = _decode(response, path)
    if not isinstance(payload, dict):
        raise GitHubResponseShapeError.unexpected(path, "an object")
    return payload


def _rate_limit(payload: object) -> RateLimit:
    if not isinstance(payload, dict):
        return RateLimit(limit=0, remaining=0, reset=0)
    return RateLimit(
        limit=int(payload.get("limit", 0)),
        remaining=int(payload.get("remaining", 0)),
        reset=int(payload.get("reset", 0)),
    )
