"""Plan execution."""

from .results import ActionStatus, ActionResult, ApplyReport
from .retry import run_with_retry, call_with_retry
from .executor import Executor

__all__ = ["ActionStatus", "ActionResult", "ApplyReport", "run_with_retry", "call_with_retry", "Executor"]
