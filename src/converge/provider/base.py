"""Provider interface: per-kind resource handlers."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class KindSchema(BaseModel):
    """What the engine needs to know about a resource kind."""
    id_prefix: Optional[str] = Field(None, description="Prefix for generated ids (simulated provider)")
    outputs: List[str] = Field(default_factory=lambda: ["id"], description="Output fields beyond declared attributes")
    replace_on: List[str] = Field(default_factory=list, description="Attributes whose change forces replacement")


DEFAULT_SCHEMA = KindSchema()


class ResourceHandler(ABC):
    """
    CRUD contract for one resource kind.
    
    Handlers raise RetryableProviderError for transient faults,
    FatalProviderError for permanent ones and ResourceNotFoundError
    from read() when the resource is gone.
    """
    
    def __init__(self, kind: str, schema: Optional[KindSchema] = None):
        self.kind = kind
        self.schema = schema or DEFAULT_SCHEMA
    
    @abstractmethod
    def create(self, attributes: Dict[str, Any]) -> Dict[str, Any]:
        """Create the resource; return its concrete outputs (must include 'id')."""
        pass
    
    @abstractmethod
    def read(self, resource_id: str) -> Dict[str, Any]:
        """Return {"attributes": ..., "outputs": ...} as they exist at the provider."""
        pass
    
    @abstractmethod
    def update(self, resource_id: str, changes: Dict[str, Any], attributes: Dict[str, Any]) -> Dict[str, Any]:
        """Apply changed attributes in place; return the new outputs."""
        pass
    
    @abstractmethod
    def delete(self, resource_id: str) -> None:
        """Delete the resource."""
        pass


class Provider(ABC):
    """A set of resource handlers addressed by kind."""
    
    name = "provider"
    
    @abstractmethod
    def handler_for(self, kind: str) -> ResourceHandler:
        """Return the handler for kind or raise FatalProviderError."""
        pass
    
    def schemas(self) -> Dict[str, KindSchema]:
        """All kind schemas this provider knows about."""
        return {}
