"""Validate raw declaration document structure."""

from typing import Dict, Any, List
from ..utils.errors import DeclarationError
from ..utils.logging import get_logger

logger = get_logger("ingest.declaration_validator")

ALLOWED_RESOURCE_KEYS = {"kind", "attributes", "depends_on"}


def validate_declaration_structure(data: Any, source: str) -> None:
    """
    Validate the top-level shape of one declaration document.
    
    Args:
        data: Parsed YAML/JSON document
        source: File name, used in error messages
        
    Raises:
        DeclarationError: If the structure is invalid
    """
    if not isinstance(data, dict):
        raise DeclarationError(
            f"{source}: declaration file must contain a mapping with a 'resources' key."
        )
    
    if "resources" not in data:
        raise DeclarationError(f"{source}: missing required 'resources' key.")
    
    resources = data["resources"]
    if resources is None:
        logger.warning(f"{source}: 'resources' is empty")
        return
    
    if not isinstance(resources, dict):
        raise DeclarationError(
            f"{source}: 'resources' must be a mapping of logical name to resource."
        )
    
    for name, resource in resources.items():
        if not isinstance(resource, dict):
            raise DeclarationError(f"{source}: resource '{name}' must be a mapping.")
        if "kind" not in resource:
            raise DeclarationError(f"{source}: resource '{name}' is missing 'kind'.")
        unknown = set(resource) - ALLOWED_RESOURCE_KEYS
        if unknown:
            raise DeclarationError(
                f"{source}: resource '{name}' has unknown keys: {', '.join(sorted(unknown))}"
            )
    
    logger.debug(f"{source}: declaration structure validation passed")


def get_declaration_summary(resources: Dict[str, Any]) -> Dict[str, Any]:
    """
    Count declared resources per kind.
    
    Args:
        resources: Mapping of logical name -> ResourceSpec
        
    Returns:
        Dictionary with resource_count and kinds
    """
    kinds: Dict[str, int] = {}
    for spec in resources.values():
        kinds[spec.kind] = kinds.get(spec.kind, 0) + 1
    return {"resource_count": len(resources), "kinds": dict(sorted(kinds.items()))}


def find_duplicate_names(documents: List[Dict[str, Any]]) -> List[str]:
    """Logical names declared in more than one document."""
    seen = set()
    duplicates = set()
    for doc in documents:
        for name in (doc.get("resources") or {}):
            if name in seen:
                duplicates.add(name)
            seen.add(name)
    return sorted(duplicates)
