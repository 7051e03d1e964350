"""Run exclusion for a state target.

Which primitive is used is a configuration choice: an advisory lock file
next to the state blob, an in-process lock, or none (the external store
provides its own conditional-write or lease primitive).
"""

import json
import os
import socket
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict
from ..utils.errors import StateLockError, ConfigError
from ..utils.logging import get_logger

logger = get_logger("state.lock")

_PROCESS_LOCKS: Dict[str, threading.Lock] = {}
_PROCESS_LOCKS_GUARD = threading.Lock()


class StateLock:
    """Context manager guarding one state target."""
    
    def acquire(self, operation: str = "apply") -> None:
        pass
    
    def release(self) -> None:
        pass
    
    def __enter__(self) -> "StateLock":
        self.acquire()
        return self
    
    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class FileLock(StateLock):
    """Advisory lock file created with O_EXCL; holds owner info as JSON."""
    
    def __init__(self, state_path: str):
        self.path = Path(str(state_path) + ".lock")
        self._held = False
    
    def acquire(self, operation: str = "apply") -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        info = {
            "pid": os.getpid(),
            "host": socket.gethostname(),
            "operation": operation,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            raise StateLockError(
                f"State is locked ({self.path}): {self._describe_holder()}. "
                "If no other run is active, remove it with: converge state unlock"
            )
        except OSError as e:
            raise StateLockError(f"Cannot create lock file {self.path}: {e}")
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(info, f)
        self._held = True
        logger.debug(f"Acquired state lock {self.path}")
    
    def _describe_holder(self) -> str:
        try:
            info = json.loads(self.path.read_text(encoding='utf-8'))
            return f"held by pid {info.get('pid')} on {info.get('host')} ({info.get('operation')}) since {info.get('created_at')}"
        except (OSError, ValueError):
            return "holder unknown"
    
    def release(self) -> None:
        if not self._held:
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            logger.warning(f"Lock file {self.path} disappeared before release")
        self._held = False
        logger.debug(f"Released state lock {self.path}")


class ProcessLock(StateLock):
    """Non-blocking in-process lock keyed by state path."""
    
    def __init__(self, state_path: str):
        key = os.path.abspath(str(state_path))
        with _PROCESS_LOCKS_GUARD:
            self._lock = _PROCESS_LOCKS.setdefault(key, threading.Lock())
        self.key = key
        self._held = False
    
    def acquire(self, operation: str = "apply") -> None:
        if not self._lock.acquire(blocking=False):
            raise StateLockError(f"State {self.key} is already in use by another run in this process")
        self._held = True
    
    def release(self) -> None:
        if self._held:
            self._held = False
            self._lock.release()


def make_lock(mode: str, state_path: str) -> StateLock:
    """Build the lock for a configured mode."""
    if mode == "file":
        return FileLock(state_path)
    if mode == "process":
        return ProcessLock(state_path)
    if mode == "none":
        return StateLock()
    raise ConfigError(f"Unknown state lock mode: {mode}")


def force_unlock(state_path: str) -> bool:
    """Remove a stale lock file. Returns True if one was removed."""
    path = Path(str(state_path) + ".lock")
    if not path.exists():
        return False
    path.unlink()
    logger.warning(f"Force-removed state lock {path}")
    return True
