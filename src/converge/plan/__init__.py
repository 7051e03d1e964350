"""Planning: diff declarations against state and order the actions."""

from .models import ActionType, ActionReason, AttributeChange, PlannedAction, DriftEntry, Plan
from .planner import Planner, action_id
from .refresh import refresh_records

__all__ = [
    "ActionType",
    "ActionReason",
    "AttributeChange",
    "PlannedAction",
    "DriftEntry",
    "Plan",
    "Planner",
    "action_id",
    "refresh_records",
]
