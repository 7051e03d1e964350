"""Load declaration sets from YAML/JSON files."""

from pathlib import Path
from typing import Dict, Any, List
import yaml
from pydantic import ValidationError
from .models import DeclarationSet
from .declaration_validator import (
    validate_declaration_structure,
    get_declaration_summary,
    find_duplicate_names,
)
from ..utils.errors import DeclarationError
from ..utils.logging import get_logger

logger = get_logger("ingest.declaration_loader")

DECLARATION_SUFFIXES = (".yaml", ".yml", ".json")


def load_declarations(path: str) -> DeclarationSet:
    """
    Load a declaration set from a file or a directory of files.
    
    A directory is loaded by reading every *.yaml, *.yml and *.json file
    in it (not recursively), in name order, and merging their resources.
    
    Args:
        path: Declaration file or directory
        
    Returns:
        Validated DeclarationSet
        
    Raises:
        DeclarationError: If a file is missing, unreadable or invalid
    """
    decl_path = Path(path)
    
    if not decl_path.exists():
        raise DeclarationError(
            f"Declaration path not found: {path}. "
            "Please check the path and ensure the file exists."
        )
    
    if decl_path.is_dir():
        files = sorted(p for p in decl_path.iterdir() if p.is_file() and p.suffix in DECLARATION_SUFFIXES)
        if not files:
            raise DeclarationError(f"No declaration files (*.yaml, *.yml, *.json) in directory: {path}")
    else:
        files = [decl_path]
    
    documents = [_read_document(f) for f in files]
    
    duplicates = find_duplicate_names(documents)
    if duplicates:
        raise DeclarationError(f"Resources declared more than once: {', '.join(duplicates)}")
    
    merged: Dict[str, Any] = {}
    for doc in documents:
        merged.update(doc.get("resources") or {})
    
    try:
        declarations = DeclarationSet(resources=merged)
    except ValidationError as e:
        raise DeclarationError(f"Invalid declarations in {path}: {e}")
    
    summary = get_declaration_summary(declarations.resources)
    logger.info(
        f"Loaded {summary['resource_count']} resources from {len(files)} file(s) at {path}"
    )
    return declarations


def _read_document(path: Path) -> Dict[str, Any]:
    """Parse and structurally validate one declaration file."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise DeclarationError(
            f"Invalid YAML/JSON in declaration file {path}: {e}"
        )
    except OSError as e:
        raise DeclarationError(
            f"Error reading declaration file {path}: {e}. "
            "Please check file permissions and try again."
        )
    
    validate_declaration_structure(data, str(path))
    return data


def declarations_from_dict(data: Dict[str, Any]) -> DeclarationSet:
    """Build a DeclarationSet from an in-memory document."""
    validate_declaration_structure(data, "<memory>")
    try:
        return DeclarationSet(resources=data.get("resources") or {})
    except ValidationError as e:
        raise DeclarationError(f"Invalid declarations: {e}")
