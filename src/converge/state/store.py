"""State store: last-applied records keyed by resource address."""

import json
import threading
from typing import Dict, List, Optional
from pydantic import ValidationError
from .backends import StorageBackend, LocalFileBackend
from .models import StateDocument, StateRecord, STATE_FORMAT_VERSION
from ..utils.errors import StateStoreError
from ..utils.logging import get_logger

logger = get_logger("state.store")


class StateStore:
    """
    Persists StateRecords through a storage backend.
    
    Every save() and delete() is a single-record transaction: the whole
    document is rewritten atomically by the backend, so a crash between
    two calls leaves all earlier commits intact. Calls are serialized by
    an internal lock; the store is shared by executor worker threads.
    """
    
    def __init__(self, backend: StorageBackend):
        self.backend = backend
        self._lock = threading.RLock()
        self._document: Optional[StateDocument] = None
    
    def _read_document(self) -> StateDocument:
        raw = self.backend.read()
        if raw is None:
            logger.debug(f"No state at {self.backend.describe()}, starting empty")
            return StateDocument()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StateStoreError(f"State at {self.backend.describe()} is corrupt (invalid JSON): {e}")
        if not isinstance(data, dict):
            raise StateStoreError(f"State at {self.backend.describe()} is corrupt: expected an object")
        version = data.get("format_version")
        if version != STATE_FORMAT_VERSION:
            raise StateStoreError(
                f"Unsupported state format_version {version!r} at {self.backend.describe()} "
                f"(expected {STATE_FORMAT_VERSION})"
            )
        try:
            return StateDocument(**data)
        except ValidationError as e:
            raise StateStoreError(f"State at {self.backend.describe()} is corrupt: {e}")
    
    def _document_or_load(self) -> StateDocument:
        if self._document is None:
            self._document = self._read_document()
        return self._document
    
    def _commit(self, document: StateDocument) -> None:
        document.serial += 1
        payload = json.dumps(document.model_dump(mode="json"), indent=2, sort_keys=True)
        self.backend.write(payload + "\n")
        self._document = document
    
    def load(self) -> Dict[str, StateRecord]:
        """Read the backend and return all records keyed by address."""
        with self._lock:
            self._document = self._read_document()
            logger.info(
                f"Loaded state from {self.backend.describe()} "
                f"({len(self._document.records)} records, serial {self._document.serial})"
            )
            return dict(self._document.records)
    
    def get(self, address: str) -> Optional[StateRecord]:
        """Committed record for address, if any."""
        with self._lock:
            return self._document_or_load().records.get(address)
    
    def list(self) -> List[StateRecord]:
        """All committed records in address order."""
        with self._lock:
            records = self._document_or_load().records
            return [records[a] for a in sorted(records)]
    
    def save(self, record: StateRecord) -> None:
        """Upsert one record and persist."""
        with self._lock:
            document = self._document_or_load().model_copy(deep=True)
            document.records[record.address] = record
            self._commit(document)
            logger.debug(f"Saved state record {record.address} (serial {document.serial})")
    
    def delete(self, address: str) -> None:
        """Remove one record and persist. Missing addresses are ignored."""
        with self._lock:
            current = self._document_or_load()
            if address not in current.records:
                logger.debug(f"delete({address}): no such record")
                return
            document = current.model_copy(deep=True)
            del document.records[address]
            self._commit(document)
            logger.debug(f"Deleted state record {address} (serial {document.serial})")
    
    @property
    def serial(self) -> int:
        with self._lock:
            return self._document_or_load().serial
    
    @property
    def lineage(self) -> str:
        with self._lock:
            return self._document_or_load().lineage


def open_state_store(path: str, backup: bool = True) -> StateStore:
    """State store over a local file."""
    return StateStore(LocalFileBackend(path, backup=backup))
