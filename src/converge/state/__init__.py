"""State persistence."""

from .models import StateRecord, StateDocument, STATE_FORMAT_VERSION
from .backends import StorageBackend, LocalFileBackend, MemoryBackend
from .store import StateStore, open_state_store
from .lock import StateLock, FileLock, ProcessLock, make_lock, force_unlock

__all__ = [
    "StateRecord",
    "StateDocument",
    "STATE_FORMAT_VERSION",
    "StorageBackend",
    "LocalFileBackend",
    "MemoryBackend",
    "StateStore",
    "open_state_store",
    "StateLock",
    "FileLock",
    "ProcessLock",
    "make_lock",
    "force_unlock",
]
