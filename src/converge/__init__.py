"""converge - Declarative infrastructure reconciliation engine."""

from typing import Optional
from .config import load_settings, EngineSettings
from .ingest.declaration_loader import load_declarations
from .graph.resource_graph import ResourceGraph, build_graph
from .plan.models import Plan
from .plan.planner import Planner
from .plan.refresh import refresh_records
from .execute.executor import Executor
from .execute.results import ApplyReport
from .provider import Provider, get_provider
from .state.store import StateStore, open_state_store
from .state.lock import make_lock
from .utils.logging import setup_logging, get_logger
from .utils.errors import ApplyError, ConvergeError

__version__ = "0.1.0"

__all__ = ["plan_changes", "apply_plan", "reconcile", "Workspace"]

setup_logging()
logger = get_logger("converge")


class Workspace:
    """Settings plus the provider and state store they select."""

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        provider: Optional[Provider] = None,
        store: Optional[StateStore] = None,
    ):
        self.settings = settings or load_settings()
        self.provider = provider or get_provider(
            self.settings.provider.type,
            schemas=self.settings.kinds,
            path=self.settings.provider.path,
        )
        self.store = store or open_state_store(self.settings.state.path, backup=self.settings.state.backup)

    def lock(self):
        """Run-exclusion lock for this workspace's state target."""
        return make_lock(self.settings.state.lock, self.settings.state.path)

    def schemas(self):
        """Kind schemas: provider's, overlaid with configured ones."""
        schemas = dict(self.provider.schemas())
        schemas.update(self.settings.kinds)
        return schemas

    def executor(self) -> Executor:
        return Executor(
            self.provider,
            self.store,
            parallelism=self.settings.parallelism,
            retry=self.settings.retry,
            fail_fast=self.settings.fail_fast,
        )


def load_graph(declarations_path: str, workspace: Workspace) -> ResourceGraph:
    """Load declarations and build the validated graph."""
    declarations = load_declarations(declarations_path)
    return build_graph(declarations, workspace.schemas())


def plan_changes(
    declarations_path: Optional[str],
    workspace: Optional[Workspace] = None,
    destroy: bool = False,
    refresh: Optional[bool] = None,
) -> Plan:
    """
    Plan the actions that reconcile state with declarations.

    Static errors (bad declarations, malformed references, cycles, plan
    conflicts) are raised before any provider call that changes anything.
    """
    workspace = workspace or Workspace()
    refresh = workspace.settings.refresh if refresh is None else refresh

    try:
        loaded = workspace.store.load()
        records, drift = loaded, []
        if refresh:
            records, drift = refresh_records(loaded, workspace.provider, workspace.settings.retry)
        gone = {d.address: loaded[d.address] for d in drift if d.status == "deleted"}

        planner = Planner(workspace.schemas())
        if destroy:
            plan = planner.plan_destroy(records, gone)
        else:
            graph = load_graph(declarations_path, workspace)
            plan = planner.plan(graph, records, gone)
        plan.drift = drift
        return plan

    except ConvergeError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during planning: {e}", exc_info=True)
        raise ConvergeError(f"Planning failed: {e}") from e


def apply_plan(plan: Plan, workspace: Optional[Workspace] = None, lock: bool = True) -> ApplyReport:
    """Apply a plan; takes the state lock unless the caller already holds it."""
    workspace = workspace or Workspace()
    if not lock:
        return workspace.executor().apply(plan)
    with workspace.lock():
        return workspace.executor().apply(plan)


def reconcile(declarations_path: str, workspace: Optional[Workspace] = None) -> ApplyReport:
    """
    Plan and apply in one step under the state lock.

    Raises:
        ApplyError: If any action failed, was skipped or was cancelled;
            the report is attached as .report
    """
    workspace = workspace or Workspace()
    with workspace.lock():
        plan = plan_changes(declarations_path, workspace)
        if not plan.has_changes:
            logger.info("No changes. Infrastructure matches the declarations.")
            return ApplyReport()
        report = apply_plan(plan, workspace, lock=False)
    if not report.success:
        summary = report.summary()
        raise ApplyError(
            f"Apply finished with {summary['failed']} failed, {summary['skipped']} skipped "
            f"and {summary['cancelled']} not started actions",
            report=report,
        )
    return report
