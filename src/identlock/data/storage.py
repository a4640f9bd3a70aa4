"""Storage contract used by locks, plus the built-in adapters."""

from __future__ import annotations

import abc
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from identlock.core.errors import SerializationError, StorageUnavailableError
from identlock.data.ambient import AmbientState


class Storage(abc.ABC):
    """Async key/value storage with verifying writes."""

    @abc.abstractmethod
    async def get(self, key: str) -> Any:  # pragma: no cover - interface
        """Return the value stored under ``key`` or None when absent."""
        raise NotImplementedError

    @abc.abstractmethod
    async def set(self, key: str, value: Any) -> Any:  # pragma: no cover - interface
        """Store ``value`` (None clears the slot) and return the verified value.

        Returns None when the stored value could not be read back intact.
        """
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        """Remove ``key`` outright. Optional for adapters."""
        raise NotImplementedError(f"{type(self).__name__} does not support delete")

    async def close(self) -> None:
        """Release connections or handles held by the adapter."""


def _encode(key: str, value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"Cannot serialize value for {key!r}: {exc}") from exc


def _same(lhs: Any, rhs: Any) -> bool:
    return json.dumps(lhs, sort_keys=True) == json.dumps(rhs, sort_keys=True)


class TextStorage(Storage):
    """Storage that keeps values as JSON text.

    Text that does not parse as JSON is handed back as the raw string.
    """

    @abc.abstractmethod
    async def _read_text(self, key: str) -> Optional[str]:  # pragma: no cover - interface
        raise NotImplementedError

    @abc.abstractmethod
    async def _write_text(self, key: str, text: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    @abc.abstractmethod
    async def _remove_text(self, key: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    async def get(self, key: str) -> Any:
        raw = await self._read_text(key)
        if not isinstance(raw, str):
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return raw

    async def set(self, key: str, value: Any) -> Any:
        await self._write_text(key, _encode(key, value))
        stored = await self.get(key)
        return value if _same(stored, value) else None

    async def delete(self, key: str) -> None:
        await self._remove_text(key)


class DurableBackend(Protocol):
    """Synchronous string store in the style of a browser's localStorage."""

    def get_item(self, key: str) -> Optional[str]: ...
    def set_item(self, key: str, value: str) -> None: ...
    def remove_item(self, key: str) -> None: ...


class MemoryBackend:
    """Dict-backed durable backend; lives as long as the object does."""

    def __init__(self, items: Optional[Dict[str, str]] = None) -> None:
        self.items: Dict[str, str] = dict(items or {})

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


class JsonFileBackend:
    """Durable backend persisting a single JSON object to ``path``.

    The file is re-read on every access so that separate instances pointing at
    the same path see each other's writes. With ``encryption_key`` (or
    ``IDLOCK_STORAGE_KEY``) the file content is Fernet-encrypted.
    """

    def __init__(self, path: Path, *, encryption_key: Optional[str] = None) -> None:
        self._path = Path(path)
        self._fernet = self._init_fernet(encryption_key)

    @property
    def path(self) -> Path:
        return self._path

    def _init_fernet(self, key: Optional[str]) -> Optional["Fernet"]:
        key = key or os.getenv("IDLOCK_STORAGE_KEY")
        if not key:
            return None
        from cryptography.fernet import Fernet

        if isinstance(key, str):
            key_bytes = key.encode("utf-8")
        else:
            key_bytes = key
        try:
            return Fernet(key_bytes)
        except Exception as exc:
            raise ValueError("Invalid IDLOCK_STORAGE_KEY provided for JsonFileBackend encryption") from exc

    def _load(self) -> Dict[str, str]:
        try:
            raw = self._path.read_bytes()
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise StorageUnavailableError(f"Unable to read {self._path}: {exc}") from exc
        if not raw:
            return {}
        if self._fernet:
            from cryptography.fernet import InvalidToken

            try:
                raw = self._fernet.decrypt(raw)
            except InvalidToken as exc:
                raise StorageUnavailableError(f"Unable to decrypt {self._path} with provided key") from exc
        try:
            data = json.loads(raw.decode("utf-8"))
        except ValueError as exc:
            raise StorageUnavailableError(f"Corrupt storage file {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageUnavailableError(f"Corrupt storage file {self._path}: expected a JSON object")
        return data

    def _dump(self, data: Dict[str, str]) -> None:
        payload = json.dumps(data, indent=2, sort_keys=True).encode("utf-8")
        if self._fernet:
            payload = self._fernet.encrypt(payload)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_bytes(payload)
        except OSError as exc:
            raise StorageUnavailableError(f"Unable to write {self._path}: {exc}") from exc

    def get_item(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def remove_item(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._dump(data)


class DefaultStorage(TextStorage):
    """Durable backend when one is available, process-wide ambient state otherwise."""

    def __init__(self, backend: Optional[DurableBackend] = None, *, ambient: Optional[AmbientState] = None) -> None:
        self._backend = backend
        self._ambient = ambient if ambient is not None else AmbientState.default()

    @property
    def backend(self) -> Optional[DurableBackend]:
        return self._backend

    @property
    def durable(self) -> bool:
        return self._backend is not None

    async def _read_text(self, key: str) -> Optional[str]:
        if self._backend is not None:
            return self._call(self._backend.get_item, key)
        return self._ambient.get(key)

    async def _write_text(self, key: str, text: str) -> None:
        if self._backend is not None:
            self._call(self._backend.set_item, key, text)
        else:
            self._ambient.set(key, text)

    async def _remove_text(self, key: str) -> None:
        if self._backend is not None:
            self._call(self._backend.remove_item, key)
        else:
            self._ambient.delete(key)

    @staticmethod
    def _call(method, key: str, *args: Any) -> Any:
        try:
            return method(key, *args)
        except StorageUnavailableError as exc:
            if exc.key is None:
                exc.key = key
            raise
        except OSError as exc:
            raise StorageUnavailableError(f"Storage backend failed for {key!r}: {exc}", key=key) from exc
