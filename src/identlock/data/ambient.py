"""Process-wide key/value state shared by every lock in the interpreter."""

from __future__ import annotations

from typing import Any, Dict, Iterator, Optional


class AmbientState:
    """Plain in-process mapping used for ephemeral ids and as fallback storage.

    One instance is created lazily per process (see :meth:`default`) and lives
    until interpreter exit. Tests and embedders can pass their own instance to
    :class:`identlock.core.locks.Lock` or :class:`identlock.data.storage.DefaultStorage`.
    Writes are last-write-wins; there is no locking.
    """

    _default: Optional["AmbientState"] = None

    def __init__(self) -> None:
        self._values: Dict[str, Any] = {}

    @classmethod
    def default(cls) -> "AmbientState":
        if cls._default is None:
            cls._default = cls()
        return cls._default

    def get(self, key: str) -> Any:
        return self._values.get(key)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)

    def keys(self) -> Iterator[str]:
        return iter(list(self._values))

    def clear(self, prefix: Optional[str] = None) -> None:
        """Drop every key, or only keys starting with ``prefix``."""
        if prefix is None:
            self._values.clear()
            return
        for key in [k for k in self._values if k.startswith(prefix)]:
            del self._values[key]

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)
