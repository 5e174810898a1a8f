"""
Cache abstraction for upstream (GitHub) responses.

Supports an in-memory fallback for tests/local runs and a Redis-backed
implementation for production.
"""

from __future__ import annotations

import hashlib
import json
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol

import redis


def cache_key(body: Any) -> str:
    """
    MD5 hex digest of the serialized request body.

    Only the body takes part in the key: two calls with different methods or
    paths but the same body share an entry. A missing body counts as ``{}``.
    """
    if body is None:
        body = {}
    serialized = json.dumps(body, separators=(",", ":"), ensure_ascii=False)
    return hashlib.md5(serialized.encode("utf-8")).hexdigest()


class ResponseCache(Protocol):
    """Minimal key/value interface with per-entry expiry."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        ...


@dataclass
class InMemoryResponseCache:
    """Dict-backed cache for testing/dev. Expiry follows ``clock``."""

    clock: Callable[[], float] = time.monotonic
    entries: dict[str, tuple[str, float]] = field(default_factory=dict)

    def get(self, key: str) -> Optional[str]:
        entry = self.entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self.clock() >= expires_at:
            del self.entries[key]
            return None
        return value

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self.entries[key] = (value, self.clock() + ttl_seconds)

    def reset(self) -> None:
        self.entries.clear()


@dataclass
class RedisResponseCache:
    """Redis-backed cache using ``SET key value EX ttl``."""

    url: str

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url, decode_responses=True)

    def get(self, key: str) -> Optional[str]:
        return self.client.get(key)

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self.client.set(key, value, ex=ttl_seconds)
