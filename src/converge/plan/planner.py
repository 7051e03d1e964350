"""Diff the resource graph against recorded state and order the actions."""

import networkx as nx
from typing import Any, Dict, List, Optional, Set
from .differ import diff_attributes, creation_changes, requires_replacement
from .models import (
    ActionReason,
    ActionType,
    AttributeChange,
    Plan,
    PlannedAction,
)
from ..graph.references import UnknownValue, dig, resolve_attributes
from ..graph.resource_graph import ResourceGraph, ResourceNode
from ..provider.base import KindSchema, DEFAULT_SCHEMA
from ..state.models import StateRecord
from ..utils.errors import PlanConflictError
from ..utils.logging import get_logger

logger = get_logger("plan.planner")

# Tie-break among unordered actions: by logical name, then this phase order.
PHASE_RANK = {ActionType.DELETE: 0, ActionType.UPDATE: 1, ActionType.CREATE: 2}

_REPLACE = "REPLACE"


def action_id(action: ActionType, address: str) -> str:
    return f"{ActionType(action).value.lower()}:{address}"


class _Desired:
    """Per-node planning result."""

    def __init__(self, node: ResourceNode, record: Optional[StateRecord]):
        self.node = node
        self.record = record
        self.resolved: Dict[str, Any] = {}
        self.unknown: Set[str] = set()
        self.changes: List[AttributeChange] = []
        self.status = ActionType.NO_OP

    @property
    def pending(self) -> bool:
        """Outputs are not known until apply."""
        return self.status in (ActionType.CREATE, _REPLACE)


class Planner:
    """
    Computes an ordered, deterministic plan.

    Creates and updates follow dependency order, deletes follow reverse
    dependency order. Unordered actions are sorted by logical name, so
    identical inputs always give an identical plan.
    """

    def __init__(self, schemas: Optional[Dict[str, KindSchema]] = None):
        self.schemas = schemas or {}

    def _schema(self, kind: str) -> KindSchema:
        return self.schemas.get(kind, DEFAULT_SCHEMA)

    def plan(
        self,
        graph: ResourceGraph,
        records: Dict[str, StateRecord],
        gone: Optional[Dict[str, StateRecord]] = None,
    ) -> Plan:
        """
        Plan the changes that make recorded state match the graph.

        Args:
            graph: Declared resources
            records: Last-applied records keyed by address
            gone: Records whose resource no longer exists at the provider;
                declared ones are recreated, the rest have their record deleted

        Returns:
            Plan with executable actions in order and unchanged addresses

        Raises:
            PlanConflictError: A replacement is blocked by a dependent that is not replaced
        """
        gone = gone or {}
        desired = self._diff_nodes(graph, records)
        self._check_conflicts(graph, desired)

        declared = {d.node.address for d in desired.values()}
        known = {**gone, **records}
        orphans = {address: record for address, record in known.items() if address not in declared}

        actions = self._build_actions(desired, known, orphans)
        ordered = self._order(actions)
        unchanged = sorted(d.node.address for d in desired.values() if d.status == ActionType.NO_OP)

        plan = Plan(actions=ordered, unchanged=unchanged)
        logger.info(f"Planned {len(ordered)} actions ({plan.counts()}), {len(unchanged)} unchanged")
        return plan

    def plan_destroy(
        self,
        records: Dict[str, StateRecord],
        gone: Optional[Dict[str, StateRecord]] = None,
    ) -> Plan:
        """Plan deletion of every recorded resource, dependents first."""
        known = {**(gone or {}), **records}
        actions = self._build_actions({}, known, dict(known), reason=ActionReason.DESTROY)
        plan = Plan(actions=self._order(actions), destroy=True)
        logger.info(f"Planned destruction of {len(plan.actions)} resources")
        return plan

    def _diff_nodes(self, graph: ResourceGraph, records: Dict[str, StateRecord]) -> Dict[str, _Desired]:
        desired: Dict[str, _Desired] = {}

        def lookup(target: str, field: str, path: List[str]) -> Any:
            entry = desired[target]
            if field in entry.resolved:
                base = entry.resolved[field]
            elif field in entry.unknown or entry.pending or entry.record is None:
                raise UnknownValue(f"{target}.{field}")
            elif field in entry.record.outputs:
                base = entry.record.outputs[field]
            else:
                raise UnknownValue(f"{target}.{field}")
            try:
                return dig(base, path)
            except KeyError:
                raise UnknownValue(f"{target}.{field}")

        for name in graph.creation_order():
            node = graph.get_node(name)
            entry = _Desired(node, records.get(node.address))
            names = {ref.target for ref in node.references}
            entry.resolved, entry.unknown = resolve_attributes(node.attributes, lookup, names)

            if entry.record is None:
                entry.status = ActionType.CREATE
                entry.changes = creation_changes(entry.resolved, entry.unknown)
            else:
                entry.changes = diff_attributes(
                    entry.record.attributes,
                    entry.resolved,
                    entry.unknown,
                    self._schema(node.kind).replace_on,
                )
                if not entry.changes:
                    entry.status = ActionType.NO_OP
                elif requires_replacement(entry.changes):
                    entry.status = _REPLACE
                else:
                    entry.status = ActionType.UPDATE
            desired[name] = entry
            logger.debug(f"{node.address}: {entry.status} ({len(entry.changes)} changes)")

        return desired

    def _check_conflicts(self, graph: ResourceGraph, desired: Dict[str, _Desired]) -> None:
        conflicts = []
        for name in sorted(desired):
            if desired[name].status != _REPLACE:
                continue
            for dependent in graph.get_dependents(name):
                node = graph.get_node(dependent)
                references_it = any(ref.target == name for ref in node.references)
                if references_it and desired[dependent].status != _REPLACE:
                    forced = [c.name for c in desired[name].changes if c.forces_replacement]
                    conflicts.append(
                        f"{desired[name].node.address} must be replaced (changed: {', '.join(forced)}) "
                        f"but {node.address} references it and is not replaced"
                    )
        if conflicts:
            raise PlanConflictError(conflicts)

    def _build_actions(
        self,
        desired: Dict[str, _Desired],
        records: Dict[str, StateRecord],
        deletions: Dict[str, StateRecord],
        reason: ActionReason = ActionReason.ORPHANED,
    ) -> Dict[str, PlannedAction]:
        actions: Dict[str, PlannedAction] = {}
        forward: Dict[str, str] = {}

        for name, entry in desired.items():
            node = entry.node
            if entry.status == ActionType.NO_OP:
                continue
            if entry.status == _REPLACE:
                deletions[node.address] = entry.record
                kind, why = ActionType.CREATE, ActionReason.REPLACE
            elif entry.status == ActionType.CREATE:
                kind, why = ActionType.CREATE, ActionReason.NEW
            else:
                kind, why = ActionType.UPDATE, ActionReason.CHANGED
            aid = action_id(kind, node.address)
            actions[aid] = PlannedAction(
                id=aid,
                action=kind,
                address=node.address,
                kind=node.kind,
                name=node.name,
                reason=why,
                changes=entry.changes,
                node=node,
            )
            forward[name] = aid

        replaced = {d.node.address for d in desired.values() if d.status == _REPLACE}
        for address, record in deletions.items():
            aid = action_id(ActionType.DELETE, address)
            actions[aid] = PlannedAction(
                id=aid,
                action=ActionType.DELETE,
                address=address,
                kind=record.kind,
                name=record.name,
                reason=ActionReason.REPLACE if address in replaced else reason,
                changes=[AttributeChange(name=k, before=v) for k, v in sorted(record.attributes.items())],
            )

        waits: Dict[str, Set[str]] = {aid: set() for aid in actions}

        # Producer create/update before consumer create/update.
        for name, aid in forward.items():
            for dep in desired[name].node.dependencies:
                if dep in forward:
                    waits[aid].add(forward[dep])

        # Replacement: delete the old object before creating the new one.
        for name, aid in forward.items():
            delete_id = action_id(ActionType.DELETE, desired[name].node.address)
            if delete_id in actions:
                waits[aid].add(delete_id)

        # Consumer delete before producer delete; a consumer that stops
        # referencing a deleted producer is updated first.
        for address in deletions:
            delete_id = action_id(ActionType.DELETE, address)
            for other, record in records.items():
                if address not in record.dependencies or other == address:
                    continue
                for phase in (ActionType.DELETE, ActionType.UPDATE):
                    blocker = action_id(phase, other)
                    if blocker in actions:
                        waits[delete_id].add(blocker)

        for aid, action in actions.items():
            action.depends_on = sorted(waits[aid])
        return actions

    def _order(self, actions: Dict[str, PlannedAction]) -> List[PlannedAction]:
        dag = nx.DiGraph()
        dag.add_nodes_from(actions)
        for aid, action in actions.items():
            for dep in action.depends_on:
                dag.add_edge(dep, aid)

        try:
            order = list(nx.lexicographical_topological_sort(
                dag,
                key=lambda aid: (actions[aid].name, PHASE_RANK[ActionType(actions[aid].action)], aid),
            ))
        except nx.NetworkXUnfeasible:
            cycle = [u for u, _ in nx.find_cycle(dag)]
            raise PlanConflictError([f"actions wait on each other: {' -> '.join(cycle)}"])
        return [actions[aid] for aid in order]
