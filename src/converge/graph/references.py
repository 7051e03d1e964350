"""Reference expressions: parsing and resolution.

Two forms are recognised:

* interpolation, ``${name.field.path}``, anywhere inside a string;
* a bare whole-string value ``name.field.path`` whose head is a declared
  resource. Other dotted strings (``example.com``, ``10.0.0.0/16``) are literals.
"""

import re
from typing import Any, Callable, Dict, Iterator, List, Optional, Set, Tuple
from pydantic import BaseModel, Field
from ..utils.errors import MalformedReferenceError

_NAME = r"[A-Za-z_][A-Za-z0-9_-]*"
_SEGMENT = r"[A-Za-z0-9_-]+"
INTERPOLATION = re.compile(r"\$\{\s*(" + _NAME + r")\.(" + _SEGMENT + r"(?:\." + _SEGMENT + r")*)\s*\}")
BARE_REFERENCE = re.compile(r"^(" + _NAME + r")\.(" + _SEGMENT + r"(?:\." + _SEGMENT + r")*)$")


class Reference(BaseModel):
    """Typed edge from a source attribute to a target's output field."""
    source: str = Field(..., description="Logical name of the referencing resource")
    attribute: str = Field(..., description="Dotted path of the attribute holding the expression")
    target: str = Field(..., description="Logical name of the referenced resource")
    field: str = Field(..., description="Output field of the target, e.g. 'id'")
    path: List[str] = Field(default_factory=list, description="Nested path below the field")
    expression: str = Field(..., description="Expression text as written")
    target_address: Optional[str] = Field(None, description="Address of the target, set by the graph builder")
    
    class Config:
        frozen = True
    
    @property
    def top_attribute(self) -> str:
        """Top-level attribute name on the source."""
        return self.attribute.split(".", 1)[0]


class UnknownValue(Exception):
    """Raised by a lookup when a referenced value is not known yet."""
    pass


def _split(path: str) -> Tuple[str, List[str]]:
    parts = path.split(".")
    return parts[0], parts[1:]


def parse_string(text: str, names: Set[str]) -> List[Tuple[str, str, List[str], str, bool]]:
    """
    Find references in one string.
    
    Returns:
        Tuples of (target, field, path, expression, whole_value)
    """
    found = []
    for match in INTERPOLATION.finditer(text):
        field, path = _split(match.group(2))
        whole = match.group(0) == text
        found.append((match.group(1), field, path, match.group(0), whole))
    if found:
        return found
    
    bare = BARE_REFERENCE.match(text)
    if bare and bare.group(1) in names:
        field, path = _split(bare.group(2))
        found.append((bare.group(1), field, path, text, True))
    return found


def _walk(value: Any, path: str) -> Iterator[Tuple[str, str]]:
    """Yield (attribute_path, string) for every string inside value."""
    if isinstance(value, str):
        yield path, value
    elif isinstance(value, dict):
        for key in sorted(value, key=str):
            yield from _walk(value[key], f"{path}.{key}")
    elif isinstance(value, list):
        for index, item in enumerate(value):
            yield from _walk(item, f"{path}.{index}")


def extract_references(source: str, attributes: Dict[str, Any], names: Set[str]) -> List[Reference]:
    """
    Collect every reference in a resource's attributes.
    
    Raises:
        MalformedReferenceError: If an interpolation names an undeclared resource
    """
    references = []
    for key in sorted(attributes):
        for attr_path, text in _walk(attributes[key], key):
            for target, field, path, expression, _ in parse_string(text, names):
                if target not in names:
                    raise MalformedReferenceError(
                        f"{source}.{attr_path}: '{expression}' refers to undeclared resource '{target}'",
                        resource=source,
                        expression=expression,
                    )
                references.append(Reference(
                    source=source,
                    attribute=attr_path,
                    target=target,
                    field=field,
                    path=path,
                    expression=expression,
                ))
    return references


def dig(value: Any, path: List[str]) -> Any:
    """Follow a nested path through dicts and lists."""
    current = value
    for segment in path:
        if isinstance(current, dict) and segment in current:
            current = current[segment]
        elif isinstance(current, list) and segment.isdigit() and int(segment) < len(current):
            current = current[int(segment)]
        else:
            raise KeyError(segment)
    return current


Lookup = Callable[[str, str, List[str]], Any]


def resolve_value(value: Any, lookup: Lookup, names: Set[str]) -> Any:
    """
    Substitute references in value using lookup(target, field, path).
    
    A whole-value reference keeps the referenced value's type; an
    interpolation inside a longer string is rendered with str().
    lookup raises UnknownValue when the value is not known yet.
    """
    if isinstance(value, str):
        refs = parse_string(value, names)
        if not refs:
            return value
        if len(refs) == 1 and refs[0][4]:
            target, field, path, _, _ = refs[0]
            return lookup(target, field, path)
        
        def _substitute(match: "re.Match") -> str:
            field, path = _split(match.group(2))
            return str(lookup(match.group(1), field, path))
        
        return INTERPOLATION.sub(_substitute, value)
    if isinstance(value, dict):
        return {k: resolve_value(v, lookup, names) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_value(v, lookup, names) for v in value]
    return value


def resolve_attributes(
    attributes: Dict[str, Any],
    lookup: Lookup,
    names: Set[str],
) -> Tuple[Dict[str, Any], Set[str]]:
    """
    Resolve every top-level attribute.
    
    Returns:
        (resolved, unknown) where unknown holds the attribute names whose
        value depends on something not known yet; they are absent from resolved.
    """
    resolved: Dict[str, Any] = {}
    unknown: Set[str] = set()
    for key in sorted(attributes):
        try:
            resolved[key] = resolve_value(attributes[key], lookup, names)
        except UnknownValue:
            unknown.add(key)
    return resolved, unknown

