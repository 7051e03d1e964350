"""Pydantic models for planned actions."""

import json
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from ..graph.resource_graph import ResourceNode


class ActionType(str, Enum):
    """Planned action types."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    NO_OP = "NO_OP"


class ActionReason(str, Enum):
    """Why an action was planned."""
    NEW = "new"
    CHANGED = "changed"
    REPLACE = "replace"
    ORPHANED = "orphaned"
    DESTROY = "destroy"


class AttributeChange(BaseModel):
    """One attribute difference between state and declarations."""
    name: str = Field(..., description="Top-level attribute name")
    before: Any = Field(None, description="Recorded value (None if absent)")
    after: Any = Field(None, description="Desired value (None if removed or unknown)")
    after_unknown: bool = Field(default=False, description="Desired value is known only after apply")
    forces_replacement: bool = Field(default=False, description="Change requires destroy-and-recreate")


class PlannedAction(BaseModel):
    """One executable step of a plan."""
    id: str = Field(..., description="Unique action id: '<phase>:<address>'")
    action: ActionType = Field(..., description="Action type")
    address: str = Field(..., description="Resource identity: kind.name")
    kind: str = Field(..., description="Resource kind")
    name: str = Field(..., description="Logical name")
    reason: ActionReason = Field(..., description="Why the action was planned")
    changes: List[AttributeChange] = Field(default_factory=list, description="Attribute diff")
    depends_on: List[str] = Field(default_factory=list, description="Action ids that must succeed first")
    node: Optional[ResourceNode] = Field(None, exclude=True, description="Declared node (create/update only)")
    
    class Config:
        use_enum_values = True


class DriftEntry(BaseModel):
    """Difference between recorded state and the provider, found by refresh."""
    address: str
    status: str = Field(..., description="'deleted' or 'changed'")
    attributes: List[str] = Field(default_factory=list, description="Attributes that drifted")


class Plan(BaseModel):
    """Ordered actions computed by diffing declarations against state."""
    actions: List[PlannedAction] = Field(default_factory=list, description="Executable actions in order")
    unchanged: List[str] = Field(default_factory=list, description="Addresses with no changes")
    drift: List[DriftEntry] = Field(default_factory=list, description="Drift found by refresh")
    destroy: bool = Field(default=False, description="Plan destroys everything in state")
    
    @property
    def has_changes(self) -> bool:
        return bool(self.actions)
    
    def counts(self) -> Dict[str, int]:
        """Action totals; a replacement counts once as 'replace'."""
        replaced = {a.address for a in self.actions if a.reason == ActionReason.REPLACE}
        totals = {"create": 0, "update": 0, "delete": 0, "replace": len(replaced)}
        for action in self.actions:
            if action.address in replaced:
                continue
            totals[ActionType(action.action).value.lower()] += 1
        return totals
    
    def get_action(self, action_id: str) -> Optional[PlannedAction]:
        for action in self.actions:
            if action.id == action_id:
                return action
        return None
    
    def to_json(self) -> str:
        """Deterministic JSON rendering."""
        return json.dumps(self.model_dump(mode="json"), indent=2, sort_keys=True)
