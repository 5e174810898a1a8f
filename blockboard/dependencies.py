"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from blockboard.auth import TokenVerifier, build_token_verifier
from blockboard.cache import InMemoryResponseCache, RedisResponseCache, ResponseCache
from blockboard.config import get_settings
from blockboard.db import DbClient, InMemoryDbClient, PostgresDbClient
from blockboard.github import GitHubApi, GitHubClient

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_response_cache: ResponseCache | None = None
_token_verifier: TokenVerifier | None = None
_github_client: GitHubApi | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so dashboards persist across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    url = settings.sqlalchemy_url
    if settings.use_in_memory_backends or not url:
        logger.info("Using in-memory database")
        _db_client = InMemoryDbClient()
    else:
        _db_client = PostgresDbClient(url)
    return _db_client


def get_response_cache() -> ResponseCache:
    """
    Return a singleton cache for upstream GitHub responses.
    """
    global _response_cache
    if _response_cache:
        return _response_cache

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _response_cache = RedisResponseCache(url=settings.redis_url)
    else:
        _response_cache = InMemoryResponseCache()
    return _response_cache


def get_token_verifier() -> TokenVerifier:
    global _token_verifier
    if _token_verifier:
        return _token_verifier

    settings = get_settings()
    if not settings.jwks_uri:
        raise RuntimeError("VITE_AUTH0_DOMAIN must be set to verify bearer tokens")
    _token_verifier = build_token_verifier(
        settings.jwks_uri,
        audience=settings.api_audience,
        issuer=settings.issuer,
        requests_per_minute=settings.jwks_requests_per_minute,
    )
    return _token_verifier


def get_github_client() -> GitHubApi:
    global _github_client
    if _github_client:
        return _github_client

    settings = get_settings()
    _github_client = GitHubClient(
        client_id=settings.github_client_id,
        client_secret=settings.github_client_secret,
    )
    return _github_client
