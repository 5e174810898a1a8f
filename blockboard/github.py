"""
GitHub OAuth and REST API access used by the auth and proxy routes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol
from urllib.parse import urlencode

import requests

logger = logging.getLogger(__name__)

GITHUB_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_ACCESS_TOKEN_URL = "https://github.com/login/oauth/access_token"
GITHUB_API_URL = "https://api.github.com"


class UpstreamError(Exception):
    """Network-level failure talking to GitHub."""


@dataclass
class UpstreamResponse:
    status_code: int
    payload: Any


class GitHubApi(Protocol):
    def authorize_url(self, state: str) -> str:
        ...

    def exchange_code(self, code: str) -> Optional[str]:
        ...

    def proxy(
        self, method: str, path: str, token: str, body: Any = None
    ) -> UpstreamResponse:
        ...


class GitHubClient:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        session: requests.Session | None = None,
        api_url: str = GITHUB_API_URL,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.session = session or requests.Session()
        self.api_url = api_url.rstrip("/")

    def authorize_url(self, state: str) -> str:
        query = urlencode({"client_id": self.client_id, "state": state})
        return f"{GITHUB_AUTHORIZE_URL}?{query}"

    def exchange_code(self, code: str) -> Optional[str]:
        """Trade an authorization code for an access token (None if refused)."""
        query = urlencode(
            {
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            }
        )
        try:
            response = self.session.post(
                f"{GITHUB_ACCESS_TOKEN_URL}?{query}",
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                },
            )
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise UpstreamError(f"GitHub token exchange failed: {exc}") from exc

        token = payload.get("access_token")
        if not token:
            logger.info(
                "GitHub refused code exchange: %s", payload.get("error", "unknown")
            )
        return token

    def proxy(
        self, method: str, path: str, token: str, body: Any = None
    ) -> UpstreamResponse:
        """Forward a call to the REST API; GET and HEAD are sent without a body."""
        kwargs: dict[str, Any] = {
            "headers": {
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            }
        }
        if method.upper() not in ("GET", "HEAD"):
            kwargs["json"] = body if body is not None else {}
        url = f"{self.api_url}/{path.lstrip('/')}"
        try:
            response = self.session.request(method.upper(), url, **kwargs)
        except requests.RequestException as exc:
            logger.error("GitHub %s %s failed: %s", method, path, exc)
            raise UpstreamError(str(exc)) from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None
        return UpstreamResponse(status_code=response.status_code, payload=payload)
