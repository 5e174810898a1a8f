"""
Data loaders behind the dashboard blocks.

Each loader talks to GitHub (directly or through the backend proxy) or to
the NPM registry, and ``load`` wraps a call into a ``Resource`` so the
rendering side can tell loading, error and data apart.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

import requests

from blockboard.github import GITHUB_API_URL

logger = logging.getLogger(__name__)

NPM_DOWNLOADS_URL = "https://api.npmjs.org/downloads/point"

T = TypeVar("T")


class FetchError(Exception):
    """An upstream answered with an error or an unexpected payload."""


@dataclass
class Resource(Generic[T]):
    loading: bool = False
    error: Optional[Exception] = None
    data: Optional[T] = None


def load(fn: Callable[[], T]) -> Resource[T]:
    """Run a loader synchronously and capture its outcome."""
    try:
        return Resource(data=fn())
    except (requests.RequestException, FetchError) as exc:
        logger.warning("Block data failed to load: %s", exc)
        return Resource(error=exc)


def _get_json(
    session: requests.Session, url: str, headers: dict, params: dict | None = None
) -> Any:
    response = session.get(url, headers=headers, params=params)
    if response.status_code >= 400:
        raise FetchError(f"GET {url} answered {response.status_code}")
    try:
        return response.json()
    except ValueError as exc:
        raise FetchError(f"GET {url} did not return JSON") from exc


class GitHubFetcher:
    """
    Reads repository figures from the GitHub REST API.

    ``GitHubFetcher.via_proxy`` routes the same calls through the backend's
    ``/github`` proxy, authenticated with the user's session token.
    """

    def __init__(
        self,
        token: str | None = None,
        session: requests.Session | None = None,
        base_url: str = GITHUB_API_URL,
    ):
        self.token = token
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")

    @classmethod
    def via_proxy(
        cls, api_url: str, session_token: str, session: requests.Session | None = None
    ) -> "GitHubFetcher":
        return cls(
            token=session_token,
            session=session,
            base_url=f"{api_url.rstrip('/')}/github",
        )

    def get(self, path: str, params: dict | None = None) -> Any:
        headers = {"Accept": "application/vnd.github+json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return _get_json(
            self.session, f"{self.base_url}/{path.lstrip('/')}", headers, params
        )

    def repo_stats(self, full_name: str) -> dict:
        return self.get(f"repos/{full_name}")

    def star_count(self, full_name: str) -> int:
        stats = self.repo_stats(full_name)
        if "stargazers_count" not in stats:
            raise FetchError(stats.get("message", f"No stars for {full_name}"))
        return int(stats["stargazers_count"])

    def _search_count(self, query: str) -> int:
        payload = self.get("search/issues", params={"q": query, "per_page": 1})
        try:
            return int(payload["total_count"])
        except (KeyError, TypeError, ValueError) as exc:
            raise FetchError(f"Unexpected search payload for {query!r}") from exc

    def open_issue_count(self, full_name: str) -> int:
        return self._search_count(f"repo:{full_name} type:issue state:open")

    def open_pull_request_count(self, full_name: str) -> int:
        return self._search_count(f"repo:{full_name} type:pr state:open")

    def search_repositories(self, query: str, limit: int = 10) -> list[dict]:
        payload = self.get(
            "search/repositories", params={"q": query, "per_page": limit}
        )
        return list(payload.get("items", []))


class NpmFetcher:
    def __init__(
        self,
        session: requests.Session | None = None,
        base_url: str = NPM_DOWNLOADS_URL,
    ):
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")

    def downloads(self, package: str, period: str = "last-week") -> int:
        payload = _get_json(
            self.session,
            f"{self.base_url}/{period}/{package}",
            headers={"Accept": "application/json"},
        )
        if "downloads" not in payload:
            raise FetchError(payload.get("error", f"No downloads for {package}"))
        return int(payload["downloads"])
