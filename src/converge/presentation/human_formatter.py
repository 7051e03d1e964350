"""Human-friendly output formatter - converts plans and apply reports to readable text."""

import json
import os
from typing import Any, Dict, List, Optional
from ..execute.results import ActionStatus, ApplyReport
from ..plan.models import ActionReason, ActionType, AttributeChange, Plan, PlannedAction

SYMBOLS = {
    "create": "+",
    "update": "~",
    "delete": "-",
    "replace": "-/+",
}


def _use_ascii(ascii_mode: Optional[bool] = None) -> bool:
    """Resolve whether to use ASCII output (checked at format time)."""
    if ascii_mode is not None:
        return bool(ascii_mode)
    return os.environ.get("CONVERGE_ASCII", "").lower() in ("1", "true", "yes")


def _section(title: str, width: int = 65) -> List[str]:
    """Return section divider."""
    h = "-" * width
    return [h, title.center(width), h]


def _value(value: Any) -> str:
    if isinstance(value, str):
        return json.dumps(value)
    return json.dumps(value, sort_keys=True, default=str)


def _change_line(change: AttributeChange, create: bool, arrow: str) -> str:
    marker = "  # forces replacement" if change.forces_replacement and not create else ""
    after = "(known after apply)" if change.after_unknown else _value(change.after)
    if create:
        return f"      {change.name} = {after}"
    if not change.after_unknown and change.after is None:
        return f"      {change.name} = {_value(change.before)} {arrow} null{marker}"
    if change.before is None:
        return f"      {change.name} = {after}{marker}"
    return f"      {change.name} = {_value(change.before)} {arrow} {after}{marker}"


def _verb(action: PlannedAction) -> str:
    if action.reason == ActionReason.REPLACE:
        return "replace"
    return ActionType(action.action).value.lower()


def format_action(action: PlannedAction, ascii_mode: bool = False) -> List[str]:
    """Render one planned action with its attribute diff."""
    arrow = "->" if ascii_mode else "→"
    verb = _verb(action)
    create = action.action == ActionType.CREATE and action.reason != ActionReason.REPLACE

    if action.reason == ActionReason.REPLACE:
        phase = "destroy" if action.action == ActionType.DELETE else "create"
        header = f"  {SYMBOLS['replace']} {action.address}  ({phase} for replacement)"
    else:
        why = "  (no longer declared)" if action.reason == ActionReason.ORPHANED else ""
        header = f"  {SYMBOLS[verb]} {action.address}{why}"

    lines = [header]
    if action.action == ActionType.DELETE:
        return lines
    for change in action.changes:
        lines.append(_change_line(change, create, arrow))
    return lines


def format_plan(plan: Plan, ascii_mode: Optional[bool] = None) -> str:
    """
    Format a plan as a readable diff.

    Args:
        plan: Plan to render
        ascii_mode: Force ASCII arrows (default: CONVERGE_ASCII env var)

    Returns:
        Multi-line string
    """
    ascii_mode = _use_ascii(ascii_mode)
    lines: List[str] = []

    if plan.drift:
        lines.extend(_section("DRIFT DETECTED"))
        for entry in plan.drift:
            if entry.status == "deleted":
                lines.append(f"  ! {entry.address} was deleted outside converge")
            else:
                lines.append(f"  ! {entry.address} changed outside converge: {', '.join(entry.attributes)}")
        lines.append("")

    if not plan.has_changes:
        lines.append("No changes. Infrastructure matches the declarations.")
        return "\n".join(lines)

    title = "DESTROY PLAN" if plan.destroy else "EXECUTION PLAN"
    lines.extend(_section(title))
    lines.append("Symbols: + create, ~ update, - delete, -/+ replace")
    lines.append("")

    for index, action in enumerate(plan.actions, start=1):
        action_lines = format_action(action, ascii_mode)
        action_lines[0] = f"{index:>3}." + action_lines[0][1:]
        lines.extend(action_lines)

    counts = plan.counts()
    lines.append("")
    lines.append(
        f"Plan: {counts['create']} to create, {counts['update']} to update, "
        f"{counts['delete']} to delete, {counts['replace']} to replace."
    )
    return "\n".join(lines)


def format_report(report: ApplyReport) -> str:
    """
    Format an apply report: applied, failed, skipped and cancelled actions.

    Args:
        report: Result of Executor.apply

    Returns:
        Multi-line string
    """
    lines: List[str] = []
    summary = report.summary()

    if report.success:
        lines.append(f"Apply complete! {summary['applied']} action(s) applied.")
        return "\n".join(lines)

    headline = "Apply cancelled" if report.cancelled else "Apply failed"
    lines.append(
        f"{headline}: {summary['applied']} applied, {summary['failed']} failed, "
        f"{summary['skipped']} skipped, {summary['cancelled']} not started."
    )

    groups: Dict[str, List[str]] = {"applied": [], "failed": [], "skipped": [], "not started": []}
    for result in report.results:
        if result.status == ActionStatus.SUCCEEDED:
            groups["applied"].append(f"  ok    {result.action_id}")
        elif result.status == ActionStatus.FATAL:
            attempts = f" after {result.attempts} attempt(s)" if result.attempts > 1 else ""
            groups["failed"].append(f"  FAIL  {result.action_id}{attempts}: {result.error}")
        elif result.status == ActionStatus.SKIPPED:
            groups["skipped"].append(f"  skip  {result.action_id} (blocked by {result.blocked_by})")
        elif result.status == ActionStatus.CANCELLED:
            groups["not started"].append(f"  ----  {result.action_id}")

    for title, entries in groups.items():
        if entries:
            lines.append("")
            lines.append(f"{title.capitalize()}:")
            lines.extend(entries)

    lines.append("")
    lines.append("State records were kept for applied actions. Run 'converge plan' to see what remains.")
    return "\n".join(lines)
