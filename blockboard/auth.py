"""
Bearer token verification against an Auth0-style JSON Web Key Set.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, Sequence

import jwt

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Raised when a bearer token is missing or does not verify."""


@dataclass
class AuthenticatedUser:
    sub: str
    claims: dict = field(default_factory=dict)


class SigningKeyResolver(Protocol):
    def get_signing_key_from_jwt(self, token: str) -> Any:
        ...


class RateLimitedJWKClient(jwt.PyJWKClient):
    """
    ``PyJWKClient`` that caches keys and refuses to hit the JWKS endpoint
    more than ``requests_per_minute`` times in any rolling minute.
    """

    def __init__(
        self,
        uri: str,
        requests_per_minute: int = 5,
        clock: Callable[[], float] = time.monotonic,
        **kwargs,
    ):
        kwargs.setdefault("cache_keys", True)
        kwargs.setdefault("headers", {"User-Agent": "blockboard-api"})
        super().__init__(uri, **kwargs)
        self.requests_per_minute = requests_per_minute
        self._clock = clock
        self._fetches: deque[float] = deque()
        self._lock = threading.Lock()

    def fetch_data(self) -> Any:
        with self._lock:
            now = self._clock()
            while self._fetches and now - self._fetches[0] >= 60:
                self._fetches.popleft()
            if len(self._fetches) >= self.requests_per_minute:
                logger.warning("JWKS rate limit reached for %s", self.uri)
                raise jwt.PyJWKClientError("Too many requests to the JWKS endpoint")
            self._fetches.append(now)
        return super().fetch_data()


class TokenVerifier:
    """Checks signature, audience and issuer of RS256 access tokens."""

    def __init__(
        self,
        jwks_client: SigningKeyResolver,
        audience: str | None,
        issuer: str | None,
        algorithms: Sequence[str] = ("RS256",),
    ):
        self.jwks_client = jwks_client
        self.audience = audience
        self.issuer = issuer
        self.algorithms = list(algorithms)

    def verify(self, token: str | None) -> AuthenticatedUser:
        if not token:
            raise AuthError("No token provided")
        try:
            signing_key = self.jwks_client.get_signing_key_from_jwt(token).key
            claims = jwt.decode(
                token,
                signing_key,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
            )
        except (jwt.PyJWTError, jwt.PyJWKClientError) as exc:
            logger.warning("Rejected bearer token: %s", exc)
            raise AuthError(str(exc)) from exc

        sub = claims.get("sub")
        if not sub:
            raise AuthError("Token has no subject")
        return AuthenticatedUser(sub=sub, claims=claims)


def build_token_verifier(
    jwks_uri: str,
    audience: str | None,
    issuer: str | None,
    requests_per_minute: int = 5,
) -> TokenVerifier:
    return TokenVerifier(
        RateLimitedJWKClient(jwks_uri, requests_per_minute=requests_per_minute),
        audience=audience,
        issuer=issuer,
    )
