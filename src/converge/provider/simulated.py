"""Simulated cloud provider.

Keeps resources in a dict (optionally persisted to a JSON file) and
generates provider-side ids and outputs. Used by the CLI and the tests;
no network calls are made.
"""

import json
import os
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional
from .base import Provider, ResourceHandler, KindSchema, DEFAULT_SCHEMA
from ..utils.errors import (
    FatalProviderError,
    ResourceNotFoundError,
)
from ..utils.logging import get_logger

logger = get_logger("provider.simulated")


class SimulatedCloud:
    """Shared backing store for all simulated handlers."""
    
    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self._lock = threading.Lock()
        self.resources: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.faults: Dict[tuple, List[Exception]] = {}
        if self.path and self.path.exists():
            self._load()
    
    def _load(self) -> None:
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                self.resources = json.load(f).get("resources", {})
        except (OSError, json.JSONDecodeError) as e:
            raise FatalProviderError(f"Cannot read simulated cloud file {self.path}: {e}")
    
    def _flush(self) -> None:
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, 'w', encoding='utf-8') as f:
            json.dump({"resources": self.resources}, f, indent=2, sort_keys=True)
        os.replace(tmp, self.path)
    
    def inject_fault(self, operation: str, kind: str, *errors: Exception) -> None:
        """Queue errors raised by the next calls of operation on kind."""
        self.faults.setdefault((operation, kind), []).extend(errors)
    
    def record_call(self, operation: str, kind: str, target: str) -> None:
        """Log a call and raise any queued fault for it."""
        with self._lock:
            self.calls.append((operation, kind, target))
            queued = self.faults.get((operation, kind))
            error = queued.pop(0) if queued else None
        if error is not None:
            logger.debug(f"Injected fault on {operation} {kind} {target}: {error}")
            raise error
    
    def put(self, resource_id: str, value: Dict[str, Any]) -> None:
        with self._lock:
            self.resources[resource_id] = value
            self._flush()
    
    def get(self, resource_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            value = self.resources.get(resource_id)
            return json.loads(json.dumps(value)) if value is not None else None
    
    def remove(self, resource_id: str) -> bool:
        with self._lock:
            existed = self.resources.pop(resource_id, None) is not None
            self._flush()
            return existed


class SimulatedHandler(ResourceHandler):
    """Generic handler that accepts any attributes for its kind."""
    
    def __init__(self, kind: str, cloud: SimulatedCloud, schema: Optional[KindSchema] = None):
        super().__init__(kind, schema)
        self.cloud = cloud
    
    def _new_id(self) -> str:
        prefix = self.schema.id_prefix or self.kind.split("_")[-1]
        return f"{prefix}-{uuid.uuid4().hex[:12]}"
    
    def _outputs(self, resource_id: str, attributes: Dict[str, Any]) -> Dict[str, Any]:
        outputs = {"id": resource_id}
        for field in self.schema.outputs:
            if field == "id":
                continue
            if field == "arn":
                outputs["arn"] = f"arn:sim:{self.kind}:{resource_id}"
            elif field.endswith("_ip"):
                seed = int(resource_id.rsplit("-", 1)[-1][:4], 16)
                outputs[field] = f"10.{seed % 250}.{(seed // 250) % 250}.{len(field)}"
            elif field in attributes:
                outputs[field] = attributes[field]
            else:
                outputs[field] = f"{resource_id}-{field}"
        return outputs
    
    def create(self, attributes: Dict[str, Any]) -> Dict[str, Any]:
        self.cloud.record_call("create", self.kind, "")
        resource_id = self._new_id()
        outputs = self._outputs(resource_id, attributes)
        self.cloud.put(resource_id, {"kind": self.kind, "attributes": dict(attributes), "outputs": outputs})
        logger.debug(f"Created {self.kind} {resource_id}")
        return outputs
    
    def read(self, resource_id: str) -> Dict[str, Any]:
        self.cloud.record_call("read", self.kind, resource_id)
        stored = self.cloud.get(resource_id)
        if stored is None:
            raise ResourceNotFoundError(f"{self.kind} {resource_id} not found")
        return {"attributes": stored["attributes"], "outputs": stored["outputs"]}
    
    def update(self, resource_id: str, changes: Dict[str, Any], attributes: Dict[str, Any]) -> Dict[str, Any]:
        self.cloud.record_call("update", self.kind, resource_id)
        stored = self.cloud.get(resource_id)
        if stored is None:
            raise FatalProviderError(f"Cannot update {self.kind} {resource_id}: not found")
        for key, value in changes.items():
            if value is None:
                stored["attributes"].pop(key, None)
            else:
                stored["attributes"][key] = value
        stored["outputs"] = self._outputs(resource_id, stored["attributes"])
        self.cloud.put(resource_id, stored)
        return stored["outputs"]
    
    def delete(self, resource_id: str) -> None:
        self.cloud.record_call("delete", self.kind, resource_id)
        if not self.cloud.remove(resource_id):
            logger.warning(f"Delete of missing {self.kind} {resource_id} treated as done")


class SimulatedProvider(Provider):
    """Provider serving a SimulatedHandler for every kind."""
    
    name = "simulated"
    
    def __init__(self, schemas: Optional[Dict[str, KindSchema]] = None, path: Optional[str] = None):
        self.cloud = SimulatedCloud(path)
        self._schemas = dict(schemas or {})
        self._handlers: Dict[str, SimulatedHandler] = {}
        self._lock = threading.Lock()
    
    def handler_for(self, kind: str) -> ResourceHandler:
        if not kind:
            raise FatalProviderError("Resource kind must not be empty")
        with self._lock:
            if kind not in self._handlers:
                schema = self._schemas.get(kind, DEFAULT_SCHEMA)
                self._handlers[kind] = SimulatedHandler(kind, self.cloud, schema)
            return self._handlers[kind]
    
    def schemas(self) -> Dict[str, KindSchema]:
        return dict(self._schemas)
