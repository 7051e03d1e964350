"""Apply a plan through the provider, committing state after every action."""

import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional, Set
from .results import ActionResult, ActionStatus, ApplyReport
from .retry import run_with_retry
from ..config.models import RetrySettings
from ..graph.references import UnknownValue, dig, resolve_attributes
from ..plan.differ import changed_values, diff_attributes
from ..plan.models import ActionType, Plan, PlannedAction
from ..provider.base import Provider
from ..state.models import StateRecord
from ..state.store import StateStore
from ..utils.errors import (
    FatalProviderError,
    ProviderError,
    ResourceNotFoundError,
    RetryableProviderError,
    StateStoreError,
)
from ..utils.logging import get_logger

logger = get_logger("execute.executor")


class Executor:
    """
    Runs planned actions on a bounded worker pool.

    An action is started once every action it waits for has succeeded.
    A failed action skips its dependents transitively; independent
    branches keep going unless fail_fast is set. cancel() stops new
    actions from starting; running actions finish.
    """

    def __init__(
        self,
        provider: Provider,
        store: StateStore,
        parallelism: int = 4,
        retry: Optional[RetrySettings] = None,
        fail_fast: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.provider = provider
        self.store = store
        self.parallelism = max(1, parallelism)
        self.retry = retry or RetrySettings()
        self.fail_fast = fail_fast
        self.sleep = sleep
        self._cancel = threading.Event()
        self._store_broken = threading.Event()

    def cancel(self) -> None:
        """Stop starting new actions."""
        if not self._cancel.is_set():
            logger.warning("Cancellation requested; waiting for running actions to finish")
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def apply(self, plan: Plan) -> ApplyReport:
        """Apply every action of plan; never raises for provider failures."""
        actions = {a.id: a for a in plan.actions}
        order = [a.id for a in plan.actions]
        waiting: Dict[str, Set[str]] = {aid: set(a.depends_on) & set(actions) for aid, a in actions.items()}
        dependents: Dict[str, List[str]] = {aid: [] for aid in actions}
        for aid, deps in waiting.items():
            for dep in deps:
                dependents[dep].append(aid)

        results: Dict[str, ActionResult] = {}
        running: Dict[Future, str] = {}
        stopping = False

        logger.info(f"Applying {len(order)} actions with parallelism {self.parallelism}")

        with ThreadPoolExecutor(max_workers=self.parallelism, thread_name_prefix="converge-apply") as pool:
            while True:
                if self._cancel.is_set() or self._store_broken.is_set():
                    stopping = True

                if not stopping:
                    started = set(running.values())
                    for aid in order:
                        if len(running) >= self.parallelism:
                            break
                        if aid in results or aid in started or waiting[aid]:
                            continue
                        logger.debug(f"Starting {aid}")
                        running[pool.submit(self._run_action, actions[aid])] = aid
                        started.add(aid)

                if not running:
                    break

                try:
                    done, _ = wait(list(running), return_when=FIRST_COMPLETED)
                except KeyboardInterrupt:
                    self.cancel()
                    continue

                for future in done:
                    aid = running.pop(future)
                    result = future.result()
                    results[aid] = result
                    if result.ok:
                        logger.info(f"{aid}: done")
                        for dependent in dependents[aid]:
                            waiting[dependent].discard(aid)
                    else:
                        logger.error(f"{aid}: failed: {result.error}")
                        self._skip_dependents(aid, actions, dependents, results)
                        if self.fail_fast:
                            stopping = True

        for aid in order:
            if aid not in results:
                results[aid] = ActionResult(action_id=aid, address=actions[aid].address, status=ActionStatus.CANCELLED)

        report = ApplyReport(results=[results[aid] for aid in order], cancelled=self._cancel.is_set())
        logger.info(f"Apply finished: {report.summary()}")
        return report

    def _skip_dependents(
        self,
        failed: str,
        actions: Dict[str, PlannedAction],
        dependents: Dict[str, List[str]],
        results: Dict[str, ActionResult],
    ) -> None:
        pending = list(dependents[failed])
        while pending:
            aid = pending.pop()
            if aid in results:
                continue
            results[aid] = ActionResult(
                action_id=aid,
                address=actions[aid].address,
                status=ActionStatus.SKIPPED,
                blocked_by=failed,
            )
            logger.warning(f"{aid}: skipped (upstream {failed} failed)")
            pending.extend(dependents[aid])

    def _run_action(self, action: PlannedAction) -> ActionResult:
        """Run one action with retry; returns a result, never raises."""
        return run_with_retry(lambda: self._attempt(action), self.retry, sleep=self.sleep)

    def _attempt(self, action: PlannedAction) -> ActionResult:
        def result(status: ActionStatus, error: Optional[str] = None) -> ActionResult:
            return ActionResult(action_id=action.id, address=action.address, status=status, error=error)

        try:
            self._perform(action)
        except RetryableProviderError as e:
            return result(ActionStatus.RETRYABLE, str(e))
        except ProviderError as e:
            return result(ActionStatus.FATAL, str(e))
        except StateStoreError as e:
            self._store_broken.set()
            return result(ActionStatus.FATAL, f"state write failed: {e}")
        except Exception as e:
            logger.error(f"Unexpected error in {action.id}: {e}", exc_info=True)
            return result(ActionStatus.FATAL, f"unexpected error: {e}")
        return result(ActionStatus.SUCCEEDED)

    def _perform(self, action: PlannedAction) -> None:
        handler = self.provider.handler_for(action.kind)
        kind = ActionType(action.action)

        if kind == ActionType.DELETE:
            record = self.store.get(action.address)
            if record is None:
                logger.info(f"{action.address} is already absent from state")
                return
            if record.resource_id:
                try:
                    handler.delete(record.resource_id)
                except ResourceNotFoundError:
                    logger.warning(f"{action.address} was already deleted at the provider")
            self.store.delete(action.address)
            return

        node = action.node
        if node is None:
            raise FatalProviderError(f"{action.id}: plan carries no declaration for this resource")

        attributes = self._resolve(action)

        if kind == ActionType.CREATE:
            outputs = handler.create(attributes)
            if "id" not in outputs:
                raise FatalProviderError(f"{action.address}: provider returned no 'id' on create")
        else:
            record = self.store.get(action.address)
            if record is None:
                raise FatalProviderError(f"{action.address}: cannot update, no state record")
            # The planned changes may come from refreshed live attributes that
            # the committed record does not show, so both sets go to the provider.
            payload = changed_values(action.changes, attributes)
            payload.update(changed_values(diff_attributes(record.attributes, attributes, set()), attributes))
            if payload:
                outputs = {**record.outputs, **handler.update(record.resource_id, payload, attributes)}
            else:
                outputs = record.outputs

        self.store.save(StateRecord(
            address=action.address,
            kind=action.kind,
            name=action.name,
            attributes=attributes,
            outputs=outputs,
            dependencies=node.dependency_addresses,
        ))

    def _resolve(self, action: PlannedAction) -> Dict[str, Any]:
        """Resolve references against committed state records."""
        node = action.node
        addresses = {ref.target: ref.target_address for ref in node.references}

        def lookup(target: str, field: str, path: List[str]) -> Any:
            record = self.store.get(addresses.get(target) or "")
            if record is None:
                raise UnknownValue(target)
            if field in record.outputs:
                base = record.outputs[field]
            elif field in record.attributes:
                base = record.attributes[field]
            else:
                raise UnknownValue(f"{target}.{field}")
            try:
                return dig(base, path)
            except KeyError:
                raise UnknownValue(f"{target}.{field}")

        resolved, unknown = resolve_attributes(node.attributes, lookup, set(addresses))
        if unknown:
            raise FatalProviderError(
                f"{action.address}: unresolved references in {', '.join(sorted(unknown))}"
            )
        return resolved
