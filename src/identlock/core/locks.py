"""Identity-based advisory lock over plain async key/value storage."""

from __future__ import annotations

import numbers
from typing import Any, Optional, Protocol

from pydantic import ValidationError

from identlock.core.models import MasterId, MasterIdWrapped, compare_master_id, elapsed_ms, utcnow
from identlock.core.settings import LockSettings, create_storage
from identlock.data.ambient import AmbientState
from identlock.data.storage import Storage
from identlock.utils.logging import get_logger
from identlock.utils.tokens import random_token


class AsyncLock(Protocol):
    async def __aenter__(self) -> Optional[int]: ...
    async def __aexit__(self, exc_type, exc, tb) -> None: ...


class _HeldLock:
    def __init__(self, lock: "Lock", index: int, expire_ms: Optional[float]) -> None:
        self._lock = lock
        self._index = index
        self._expire_ms = expire_ms
        self._acquired = False

    async def __aenter__(self) -> Optional[int]:
        age = await self._lock.acquire(self._index, self._expire_ms)
        self._acquired = age is not None
        return age

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if not self._acquired:
            return
        try:
            await self._lock.release(self._index)
        finally:
            self._acquired = False


class Lock:
    """Cooperative lock keyed by ``name`` with independent numbered slots.

    Ownership of a slot is the identity stored under ``<name>/master-id/<index>``.
    An identity is the pair of an ephemeral id, held in process-wide ambient
    state, and a session id, held in storage. A caller whose identity matches
    the stored one acquires the slot (again); any other caller gets ``None``
    until the slot is released or, with ``expire_ms``, the record goes stale.

    There is no compare-and-swap: whoever first observes an empty slot writes
    their identity there and wins.
    """

    def __init__(
        self,
        name: Optional[str] = None,
        clear: bool = False,
        storage: Optional[Storage] = None,
        *,
        ambient: Optional[AmbientState] = None,
        settings: Optional[LockSettings] = None,
    ) -> None:
        settings = settings or LockSettings.from_env()
        self._token_length = settings.token_length
        self._ambient = ambient if ambient is not None else AmbientState.default()
        self._owns_storage = storage is None
        self._storage = storage if storage is not None else create_storage(settings, ambient=self._ambient)
        self._name = name or random_token(self._token_length)
        self.logger = get_logger("IdentLock", settings.log_level, rich=settings.rich_logs)
        if clear:
            self._ambient.delete(self.ephemeral_id_path())

    @property
    def name(self) -> str:
        return self._name

    @property
    def storage(self) -> Storage:
        return self._storage

    @property
    def ambient(self) -> AmbientState:
        return self._ambient

    async def acquire(self, index: int = 0, expire_ms: Optional[float] = None) -> Optional[int]:
        """Try to take slot ``index``.

        Returns the age of the ownership record in milliseconds (at least 1)
        when the caller's identity owns the slot, or None when someone else
        does or the storage write could not be verified. With ``expire_ms``, a
        record older (or newer) than that many milliseconds is replaced by the
        caller's identity.
        """
        self._check_index(index)
        if expire_ms is not None and (
            isinstance(expire_ms, bool) or not isinstance(expire_ms, numbers.Real) or expire_ms < 0
        ):
            raise ValueError(f"expire_ms must be a non-negative number, got {expire_ms!r}")

        force = False
        while True:
            owner = await self._get_master_id(index, force=force)
            if owner is None:
                self.logger.warning("Slot %s could not be verified after write", self.master_id_path(index))
                return None
            candidate = await self._new_master_id()
            age = elapsed_ms(owner, candidate)
            if expire_ms is not None and not force and abs(age) > expire_ms:
                self.logger.info(
                    "Slot %s is stale (%d ms > %s ms); taking over",
                    self.master_id_path(index),
                    age,
                    expire_ms,
                )
                force = True
                continue
            if compare_master_id(owner, candidate):
                self.logger.debug("Acquired %s (age %d ms)", self.master_id_path(index), age)
                return age if age > 0 else 1
            self.logger.debug("Slot %s is held by another identity", self.master_id_path(index))
            return None

    async def release(self, index: int = 0) -> bool:
        """Clear slot ``index`` regardless of who holds it.

        Returns False only when the storage did not confirm the cleared record.
        """
        self._check_index(index)
        stored = await self._set_master_id(index, None)
        released = stored is not None and stored.value is None
        self.logger.debug("Released %s: %s", self.master_id_path(index), released)
        return released

    async def aclose(self) -> None:
        """Close the storage this lock created for itself.

        Injected storage belongs to the caller and is left open.
        """
        if not self._owns_storage:
            return
        self._owns_storage = False
        await self._storage.close()

    def hold(self, index: int = 0, expire_ms: Optional[float] = None) -> AsyncLock:
        """Return an async context manager that acquires on entry and releases on exit."""
        self._check_index(index)
        return _HeldLock(self, index, expire_ms)

    def master_id_path(self, index: int) -> str:
        return f"{self._name}/master-id/{index}"

    def session_id_path(self) -> str:
        return f"{self._name}/session-id"

    def ephemeral_id_path(self) -> str:
        return f"{self._name}/ephemeral-id"

    async def _set_master_id(self, index: int, value: Optional[MasterId]) -> Optional[MasterIdWrapped]:
        wrapped = MasterIdWrapped(value=value, nonce=random_token(self._token_length))
        result = await self._storage.set(self.master_id_path(index), wrapped.model_dump(mode="json"))
        return self._parse_wrapped(index, result)

    async def _get_master_id(self, index: int, *, force: bool = False) -> Optional[MasterId]:
        if not force:
            current = self._parse_wrapped(index, await self._storage.get(self.master_id_path(index)))
            if current is not None and current.value is not None:
                return current.value
        stored = await self._set_master_id(index, await self._new_master_id())
        return stored.value if stored is not None else None

    def _parse_wrapped(self, index: int, raw: Any) -> Optional[MasterIdWrapped]:
        if not isinstance(raw, dict):
            if raw is not None:
                self.logger.warning("Ignoring malformed record at %s", self.master_id_path(index))
            return None
        try:
            return MasterIdWrapped.model_validate(raw)
        except ValidationError:
            self.logger.warning("Ignoring malformed record at %s", self.master_id_path(index))
            return None

    async def _new_master_id(self) -> MasterId:
        return MasterId(
            now=utcnow(),
            eid=await self._ephemeral_id(),
            sid=await self._session_id(),
        )

    async def _ephemeral_id(self) -> str:
        current = self._ambient.get(self.ephemeral_id_path())
        if isinstance(current, str) and current:
            return current
        minted = random_token(self._token_length)
        self._ambient.set(self.ephemeral_id_path(), minted)
        self.logger.debug("Minted ephemeral id for %s", self._name)
        return minted

    async def _session_id(self) -> Optional[str]:
        current = await self._storage.get(self.session_id_path())
        if isinstance(current, str) and current:
            return current
        self.logger.debug("Minting session id for %s", self._name)
        stored = await self._storage.set(self.session_id_path(), random_token(self._token_length))
        return stored if isinstance(stored, str) else None

    @staticmethod
    def _check_index(index: int) -> None:
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            raise ValueError(f"Lock index must be a non-negative integer, got {index!r}")
