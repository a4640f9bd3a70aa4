"""Lock core: identity records, the lock itself, settings and errors."""

from .errors import IdentLockError, SerializationError, StorageError, StorageUnavailableError
from .locks import AsyncLock, Lock
from .models import MasterId, MasterIdWrapped, compare_master_id, elapsed_ms
from .settings import LockSettings, create_storage

__all__ = [
    "AsyncLock",
    "IdentLockError",
    "Lock",
    "LockSettings",
    "MasterId",
    "MasterIdWrapped",
    "SerializationError",
    "StorageError",
    "StorageUnavailableError",
    "compare_master_id",
    "create_storage",
    "elapsed_ms",
]
