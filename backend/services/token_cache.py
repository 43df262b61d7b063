"""OAuth access-token caches for the upstream API client.

The client only needs ``get``/``set`` with a time-to-live; production wires in
the Redis-backed cache from ``services.redis_store``, tests use the in-memory one.
"""

from datetime import datetime, timedelta
from typing import Protocol

from services.week_utils import Clock, system_clock


class TokenCache(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, token: str, ttl_seconds: int) -> None: ...


class MemoryTokenCache:
    """Process-local token cache, owned by whoever constructs it."""

    def __init__(self, clock: Clock = system_clock):
        self._clock = clock
        self._tokens: dict[str, tuple[str, datetime]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._tokens.get(key)
        if entry is None:
            return None
        token, expires_at = entry
        if self._clock() >= expires_at:
            del self._tokens[key]
            return None
        return token

    async def set(self, key: str, token: str, ttl_seconds: int) -> None:
        self._tokens[key] = (token, self._clock() + timedelta(seconds=ttl_seconds))
