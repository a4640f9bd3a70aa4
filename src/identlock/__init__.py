"""Identity-based advisory locks over async key/value storage."""

from .core.errors import IdentLockError, SerializationError, StorageError, StorageUnavailableError
from .core.locks import AsyncLock, Lock
from .core.models import MasterId, MasterIdWrapped
from .core.settings import LockSettings, create_storage
from .data.ambient import AmbientState
from .data.storage import DefaultStorage, DurableBackend, JsonFileBackend, MemoryBackend, Storage, TextStorage

__all__ = [
    "__version__",
    "AmbientState",
    "AsyncLock",
    "DefaultStorage",
    "DurableBackend",
    "IdentLockError",
    "JsonFileBackend",
    "Lock",
    "LockSettings",
    "MasterId",
    "MasterIdWrapped",
    "MemoryBackend",
    "SerializationError",
    "Storage",
    "StorageError",
    "StorageUnavailableError",
    "TextStorage",
    "create_storage",
]

__version__ = "0.1.0"
