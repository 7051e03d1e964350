"""Resource graph construction."""

from .references import Reference, UnknownValue, extract_references, resolve_attributes, resolve_value
from .resource_graph import ResourceGraph, ResourceNode, build_graph, make_address

__all__ = [
    "Reference",
    "UnknownValue",
    "extract_references",
    "resolve_attributes",
    "resolve_value",
    "ResourceGraph",
    "ResourceNode",
    "build_graph",
    "make_address",
]
