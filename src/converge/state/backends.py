"""Storage backends for the state blob."""

import os
import shutil
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from ..utils.errors import StateStoreError
from ..utils.logging import get_logger

logger = get_logger("state.backends")


class StorageBackend(ABC):
    """Holds one blob; write() must replace it atomically."""
    
    @abstractmethod
    def read(self) -> Optional[str]:
        """Return the stored blob, or None if nothing has been written yet."""
        pass
    
    @abstractmethod
    def write(self, data: str) -> None:
        """Atomically replace the stored blob."""
        pass
    
    @abstractmethod
    def describe(self) -> str:
        """Human-readable location."""
        pass


class LocalFileBackend(StorageBackend):
    """Blob in a local file, replaced via temp file + fsync + os.replace."""
    
    def __init__(self, path: str, backup: bool = True):
        self.path = Path(path)
        self.backup = backup
    
    @property
    def backup_path(self) -> Path:
        return self.path.with_name(self.path.name + ".backup")
    
    def read(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            return self.path.read_text(encoding='utf-8')
        except OSError as e:
            raise StateStoreError(f"Error reading state file {self.path}: {e}")
    
    def write(self, data: str) -> None:
        directory = self.path.parent
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                'w', encoding='utf-8', dir=directory, prefix=f".{self.path.name}.", suffix=".tmp", delete=False
            ) as f:
                tmp_name = f.name
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            if self.backup and self.path.exists():
                shutil.copy2(self.path, self.backup_path)
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            raise StateStoreError(f"Failed to write state file {self.path}: {e}")
        finally:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
    
    def describe(self) -> str:
        return str(self.path)


class MemoryBackend(StorageBackend):
    """In-process blob, for tests and dry runs."""
    
    def __init__(self, data: Optional[str] = None):
        self.data = data
        self.writes = 0
        self._lock = threading.Lock()
    
    def read(self) -> Optional[str]:
        with self._lock:
            return self.data
    
    def write(self, data: str) -> None:
        with self._lock:
            self.data = data
            self.writes += 1
    
    def describe(self) -> str:
        return "<memory>"
