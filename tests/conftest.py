from __future__ import annotations

from typing import Dict, Optional

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from identlock.data.ambient import AmbientState


_ENV_VARS = (
    "IDLOCK_STORAGE_PATH",
    "IDLOCK_STORAGE_KEY",
    "IDLOCK_REDIS_URL",
    "IDLOCK_REDIS_PREFIX",
    "IDLOCK_TOKEN_LENGTH",
    "IDLOCK_LOG_LEVEL",
    "IDLOCK_RICH_LOGS",
)




class FakeRedis:
    """Enough of redis.asyncio.Redis for RedisStorage."""

    def __init__(self) -> None:
        self.data: Dict[str, str] = {}
        self.fail = False
        self.closed = False

    def _check(self) -> None:
        if self.fail:
            raise RedisConnectionError("connection refused")

    async def get(self, key: str) -> Optional[str]:
        self._check()
        return self.data.get(key)

    async def set(self, key: str, value: str) -> bool:
        self._check()
        self.data[key] = value
        return True

    async def delete(self, key: str) -> int:
        self._check()
        return 1 if self.data.pop(key, None) is not None else 0

    async def aclose(self) -> None:
        self.closed = True



@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    AmbientState.default().clear()
    yield
    AmbientState.default().clear()


@pytest.fixture
def ambient() -> AmbientState:
    return AmbientState()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def redis_clients(monkeypatch) -> list:
    """Route ``Redis.from_url`` in the Redis adapter to fresh fake clients."""
    created: list = []

    class _Factory:
        @staticmethod
        def from_url(url, **kwargs):
            client = FakeRedis()
            client.url = url
            created.append(client)
            return client

    monkeypatch.setattr("identlock.data.storage_redis.Redis", _Factory)
    return created
