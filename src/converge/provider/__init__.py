"""Provider interface and built-in providers."""

from typing import Dict, Optional
from .base import Provider, ResourceHandler, KindSchema, DEFAULT_SCHEMA
from .simulated import SimulatedProvider, SimulatedHandler, SimulatedCloud
from ..utils.errors import ConfigError


def get_provider(provider_type: str, schemas: Optional[Dict[str, KindSchema]] = None, path: Optional[str] = None) -> Provider:
    """Build a provider by type name."""
    if provider_type == "simulated":
        return SimulatedProvider(schemas=schemas, path=path)
    raise ConfigError(f"Unknown provider type: {provider_type}. Available: simulated")


__all__ = [
    "Provider",
    "ResourceHandler",
    "KindSchema",
    "DEFAULT_SCHEMA",
    "SimulatedProvider",
    "SimulatedHandler",
    "SimulatedCloud",
    "get_provider",
]
