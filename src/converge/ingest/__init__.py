"""Declaration ingestion."""

from .models import ResourceSpec, DeclarationSet
from .declaration_loader import load_declarations, declarations_from_dict

__all__ = ["ResourceSpec", "DeclarationSet", "load_declarations", "declarations_from_dict"]
