"""Settings loader for lock storage."""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from identlock.data.ambient import AmbientState
from identlock.data.storage import DefaultStorage, JsonFileBackend, Storage
from identlock.utils.env import get_bool_env, get_int_env, get_str_env


class LockSettings(BaseModel):
    storage_path: Optional[Path] = None
    encryption_key: Optional[str] = None  # Fernet key, can also use IDLOCK_STORAGE_KEY env var
    redis_url: Optional[str] = None
    redis_prefix: str = ""
    token_length: int = Field(default=8, ge=4, le=64)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    rich_logs: bool = True

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value):
        return value.strip().upper() if isinstance(value, str) else value

    @classmethod
    def from_file(cls, path: Path) -> "LockSettings":
        data = yaml.safe_load(path.read_text()) or {}
        try:
            settings = cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid lock settings: {exc}") from exc
        if settings.storage_path and not settings.storage_path.is_absolute():
            settings.storage_path = (path.parent / settings.storage_path).resolve()
        return settings

    @classmethod
    def from_env(cls) -> "LockSettings":
        storage_path = get_str_env("IDLOCK_STORAGE_PATH")
        try:
            return cls(
                storage_path=Path(storage_path) if storage_path else None,
                encryption_key=get_str_env("IDLOCK_STORAGE_KEY"),
                redis_url=get_str_env("IDLOCK_REDIS_URL"),
                redis_prefix=get_str_env("IDLOCK_REDIS_PREFIX", default=""),
                token_length=get_int_env("IDLOCK_TOKEN_LENGTH", default=8),
                log_level=get_str_env("IDLOCK_LOG_LEVEL", default="INFO"),
                rich_logs=get_bool_env("IDLOCK_RICH_LOGS", default=True),
            )
        except ValidationError as exc:
            raise ValueError(f"Invalid lock settings: {exc}") from exc


def create_storage(settings: LockSettings, *, ambient: Optional[AmbientState] = None) -> Storage:
    """Build the storage adapter selected by ``settings``."""
    if settings.redis_url:
        from identlock.data.storage_redis import RedisStorage

        return RedisStorage(settings.redis_url, prefix=settings.redis_prefix)
    if settings.storage_path:
        backend = JsonFileBackend(settings.storage_path, encryption_key=settings.encryption_key)
        return DefaultStorage(backend, ambient=ambient)
    return DefaultStorage(ambient=ambient)
