"""
Test doubles shared by the API tests.
"""

from __future__ import annotations

from typing import Any, Optional
from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from blockboard.app import create_app
from blockboard.auth import AuthenticatedUser, AuthError
from blockboard.cache import InMemoryResponseCache
from blockboard.db import InMemoryDbClient
from blockboard.dependencies import (
    get_db_client,
    get_github_client,
    get_response_cache,
    get_token_verifier,
)
from blockboard.github import GitHubClient, UpstreamResponse

ALICE = "auth0|alice"
BOB = "auth0|bob"

TOKENS = {"alice-token": ALICE, "bob-token": BOB}


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class StubVerifier:
    """Accepts the fixed tokens in ``TOKENS``."""

    def verify(self, token: str | None) -> AuthenticatedUser:
        if token not in TOKENS:
            raise AuthError("bad token")
        return AuthenticatedUser(sub=TOKENS[token], claims={"sub": TOKENS[token]})


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGitHub(GitHubClient):
    """Real URL building, canned token exchange and proxy answers."""

    def __init__(self):
        super().__init__("client-123", "secret-456", session=MagicMock())
        self.codes: dict[str, str] = {}
        self.exchanged: list[str] = []
        self.proxied: list[tuple[str, str, str, Any]] = []
        self.answer: Optional[UpstreamResponse] = None
        self.failure: Optional[Exception] = None

    def exchange_code(self, code: str) -> Optional[str]:
        self.exchanged.append(code)
        return self.codes.get(code)

    def proxy(
        self, method: str, path: str, token: str, body: Any = None
    ) -> UpstreamResponse:
        self.proxied.append((method, path, token, body))
        if self.failure is not None:
            raise self.failure
        if self.answer is not None:
            return self.answer
        return UpstreamResponse(
            status_code=200,
            payload={"method": method, "path": path, "call": len(self.proxied)},
        )


class ApiHarness:
    """Builds an app wired to in-memory ports."""

    def __init__(self):
        self.db = InMemoryDbClient()
        self.clock = FakeClock()
        self.cache = InMemoryResponseCache(clock=self.clock)
        self.github = FakeGitHub()
        self.app = create_app()
        self.app.dependency_overrides[get_db_client] = lambda: self.db
        self.app.dependency_overrides[get_response_cache] = lambda: self.cache
        self.app.dependency_overrides[get_github_client] = lambda: self.github
        self.app.dependency_overrides[get_token_verifier] = StubVerifier
        self.client = TestClient(self.app)
