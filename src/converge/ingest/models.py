"""Pydantic models for declared resources."""

import re
from typing import Any, Dict, List
from pydantic import BaseModel, Field, field_validator

NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")
KIND_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")


class ResourceSpec(BaseModel):
    """One declared resource: its kind and attribute expressions."""
    kind: str = Field(..., description="Resource kind, e.g. 'aws_vpc'")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Attribute name -> literal or reference expression")
    depends_on: List[str] = Field(default_factory=list, description="Explicit dependencies by logical name")
    
    @field_validator("kind")
    @classmethod
    def _check_kind(cls, value: str) -> str:
        if not KIND_PATTERN.match(value):
            raise ValueError(f"invalid resource kind '{value}'")
        return value


class DeclarationSet(BaseModel):
    """Declared resources keyed by logical name."""
    resources: Dict[str, ResourceSpec] = Field(default_factory=dict, description="Logical name -> resource spec")
    
    @field_validator("resources")
    @classmethod
    def _check_names(cls, value: Dict[str, ResourceSpec]) -> Dict[str, ResourceSpec]:
        for name in value:
            if not NAME_PATTERN.match(name):
                raise ValueError(f"invalid logical name '{name}'")
        return value
