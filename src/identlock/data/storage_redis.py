"""Redis-backed storage adapter."""

from __future__ import annotations

import os
from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from identlock.core.errors import StorageUnavailableError

from .storage import TextStorage


class RedisStorage(TextStorage):
    """Keeps lock records as JSON strings in Redis.

    Plain GET/SET/DEL only; writes are verified by reading back like every
    other :class:`TextStorage`.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        client: Optional[Redis] = None,
        prefix: str = "",
    ) -> None:
        if client is None:
            client = Redis.from_url(
                url or os.getenv("IDLOCK_REDIS_URL", "redis://localhost:6379/0"),
                decode_responses=True,
            )
        self._redis = client
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def _read_text(self, key: str) -> Optional[str]:
        try:
            raw = await self._redis.get(self._key(key))
        except RedisError as exc:
            raise StorageUnavailableError(f"Redis GET failed for {key!r}: {exc}", key=key) from exc
        if isinstance(raw, bytes):
            return raw.decode("utf-8")
        return raw

    async def _write_text(self, key: str, text: str) -> None:
        try:
            await self._redis.set(self._key(key), text)
        except RedisError as exc:
            raise StorageUnavailableError(f"Redis SET failed for {key!r}: {exc}", key=key) from exc

    async def _remove_text(self, key: str) -> None:
        try:
            await self._redis.delete(self._key(key))
        except RedisError as exc:
            raise StorageUnavailableError(f"Redis DEL failed for {key!r}: {exc}", key=key) from exc

    async def close(self) -> None:
        await self._redis.aclose()
