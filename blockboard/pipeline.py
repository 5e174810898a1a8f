"""
Request pipeline stages, expressed as FastAPI dependencies.

Each stage either returns the value it contributes to the request (the
authenticated user, a loaded dashboard, a stored access) or raises an
``HTTPException`` that ends the request before the handler runs. Routes
declare the stages they need in order: auth, then resource fetch, then
ownership, then the cache around the upstream call.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Optional

from fastapi import Depends, HTTPException, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from blockboard.auth import AuthenticatedUser, AuthError, TokenVerifier
from blockboard.cache import ResponseCache, cache_key
from blockboard.config import get_settings
from blockboard.db import AccessRecord, BlockRecord, DashboardRecord, DbClient
from blockboard.dependencies import (
    get_db_client,
    get_response_cache,
    get_token_verifier,
)

logger = logging.getLogger(__name__)

NOT_FOUND = "Not Found"
UNAUTHORIZED = "Unauthorized"

_bearer = HTTPBearer(auto_error=False)


def _authenticate(verifier: TokenVerifier, token: str | None) -> AuthenticatedUser:
    try:
        return verifier.verify(token)
    except AuthError:
        raise HTTPException(status_code=401, detail=UNAUTHORIZED)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> AuthenticatedUser:
    """Auth stage reading ``Authorization: Bearer <token>``."""
    token = credentials.credentials if credentials else None
    return _authenticate(verifier, token)


def get_current_user_from_state(
    state: Optional[str] = Query(None),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> AuthenticatedUser:
    """Auth stage for the OAuth redirect flow, where no header can be sent."""
    return _authenticate(verifier, state)


def fetch_dashboard(
    id: int, db: DbClient = Depends(get_db_client)
) -> DashboardRecord:
    dashboard = db.get_dashboard(id)
    if not dashboard:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return dashboard


def fetch_block(id: int, db: DbClient = Depends(get_db_client)) -> BlockRecord:
    block = db.get_block(id)
    if not block:
        raise HTTPException(status_code=404, detail=NOT_FOUND)
    return block


def check_dashboard_ownership(
    user: AuthenticatedUser = Depends(get_current_user),
    dashboard: DashboardRecord = Depends(fetch_dashboard),
) -> DashboardRecord:
    if dashboard.owner_id != user.sub:
        raise HTTPException(status_code=401, detail=UNAUTHORIZED)
    return dashboard


def fetch_access(
    type: str, user_dependency: Callable[..., AuthenticatedUser] = get_current_user
) -> Callable[..., Optional[AccessRecord]]:
    """Build a stage loading the caller's access of ``type`` (may be None)."""

    def dependency(
        user: AuthenticatedUser = Depends(user_dependency),
        db: DbClient = Depends(get_db_client),
    ) -> Optional[AccessRecord]:
        return db.get_access(user.sub, type)

    return dependency


class ResponseCacheStage:
    """
    Wraps an upstream call: ``lookup`` short-circuits on a hit, ``store``
    saves the handler's payload after a miss. The read-then-write pair is
    not atomic; two concurrent misses both write the same entry.
    """

    def __init__(self, cache: ResponseCache, ttl_seconds: int):
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    def key_for(self, body: Any) -> str:
        return cache_key(body)

    def lookup(self, key: str) -> Any:
        cached = self.cache.get(key)
        if cached is None:
            logger.debug("Cache miss for %s", key)
            return None
        logger.debug("Cache hit for %s", key)
        return json.loads(cached)

    def store(self, key: str, payload: Any) -> None:
        self.cache.set(key, json.dumps(payload), self.ttl_seconds)


def get_response_cache_stage(
    cache: ResponseCache = Depends(get_response_cache),
) -> ResponseCacheStage:
    return ResponseCacheStage(cache, get_settings().cache_ttl_seconds)
