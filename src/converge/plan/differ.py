"""Attribute diffing between recorded state and desired attributes."""

from typing import Any, Dict, Iterable, List, Set
from .models import AttributeChange


def diff_attributes(
    before: Dict[str, Any],
    desired: Dict[str, Any],
    unknown: Set[str],
    replace_on: Iterable[str] = (),
) -> List[AttributeChange]:
    """
    Compare recorded attributes with desired ones.
    
    Args:
        before: Attributes recorded at last apply
        desired: Resolved desired attributes (unknown ones excluded)
        unknown: Attribute names whose desired value is known only after apply
        replace_on: Attributes whose change forces replacement
        
    Returns:
        Changes sorted by attribute name; empty when nothing differs
    """
    replace_on = set(replace_on)
    changes = []
    for name in sorted(set(before) | set(desired) | unknown):
        if name in unknown:
            changes.append(AttributeChange(
                name=name,
                before=before.get(name),
                after_unknown=True,
                forces_replacement=name in replace_on,
            ))
        elif name not in desired:
            changes.append(AttributeChange(
                name=name,
                before=before[name],
                forces_replacement=name in replace_on,
            ))
        elif name not in before or before[name] != desired[name]:
            changes.append(AttributeChange(
                name=name,
                before=before.get(name),
                after=desired[name],
                forces_replacement=name in replace_on,
            ))
    return changes


def creation_changes(desired: Dict[str, Any], unknown: Set[str]) -> List[AttributeChange]:
    """Changes describing a resource created from scratch."""
    return diff_attributes({}, desired, unknown)


def requires_replacement(changes: List[AttributeChange]) -> bool:
    """True if any change forces destroy-and-recreate."""
    return any(change.forces_replacement for change in changes)


def changed_values(changes: List[AttributeChange], resolved: Dict[str, Any]) -> Dict[str, Any]:
    """Provider update payload: new value per changed attribute, None for removals."""
    return {change.name: resolved.get(change.name) for change in changes}
