"""Pydantic models for persisted state."""

import uuid
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

STATE_FORMAT_VERSION = 1


class StateRecord(BaseModel):
    """Last-applied attributes of one resource."""
    address: str = Field(..., description="Resource identity: kind.name")
    kind: str = Field(..., description="Resource kind")
    name: str = Field(..., description="Logical name")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Resolved input attributes as applied")
    outputs: Dict[str, Any] = Field(default_factory=dict, description="Provider-assigned values, including 'id'")
    dependencies: List[str] = Field(default_factory=list, description="Addresses this resource referenced when applied")
    
    @property
    def resource_id(self) -> Optional[str]:
        """Provider-side id."""
        return self.outputs.get("id")


class StateDocument(BaseModel):
    """The single versioned state blob."""
    format_version: int = Field(default=STATE_FORMAT_VERSION, description="Blob layout version")
    serial: int = Field(default=0, ge=0, description="Incremented on every write")
    lineage: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Identifies one state history")
    records: Dict[str, StateRecord] = Field(default_factory=dict, description="Address -> record")
