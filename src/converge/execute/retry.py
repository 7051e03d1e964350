"""Bounded exponential backoff for provider calls (tenacity)."""

import time
from typing import Any, Callable, Optional
from tenacity import (
    Retrying,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)
from .results import ActionResult, ActionStatus
from ..config.models import RetrySettings
from ..utils.errors import RetryableProviderError
from ..utils.logging import get_logger

logger = get_logger("execute.retry")


def _wait(settings: RetrySettings) -> wait_exponential:
    return wait_exponential(
        multiplier=settings.initial_delay,
        exp_base=settings.multiplier,
        max=settings.max_delay,
    )


def _log_retry(retry_state) -> None:
    outcome = retry_state.outcome
    if outcome.failed:
        detail = outcome.exception()
    else:
        detail = outcome.result().error
    delay = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(f"Attempt {retry_state.attempt_number} failed ({detail}); retrying in {delay:.2f}s")


def _exhausted(retry_state) -> ActionResult:
    last: ActionResult = retry_state.outcome.result()
    return last.model_copy(update={
        "status": ActionStatus.FATAL,
        "error": f"{last.error} (gave up after {retry_state.attempt_number} attempts)",
    })


def run_with_retry(
    attempt: Callable[[], ActionResult],
    settings: RetrySettings,
    sleep: Callable[[float], None] = time.sleep,
) -> ActionResult:
    """
    Call attempt() until it returns a non-RETRYABLE result.
    
    A result still RETRYABLE after max_attempts is converted to FATAL.
    The returned result carries the number of attempts made.
    """
    count = 0
    
    def _counted() -> ActionResult:
        nonlocal count
        count += 1
        return attempt()
    
    retrying = Retrying(
        stop=stop_after_attempt(settings.max_attempts),
        wait=_wait(settings),
        retry=retry_if_result(lambda result: result.status == ActionStatus.RETRYABLE),
        retry_error_callback=_exhausted,
        before_sleep=_log_retry,
        sleep=sleep,
    )
    result = retrying(_counted)
    return result.model_copy(update={"attempts": count})


def call_with_retry(
    fn: Callable[..., Any],
    settings: RetrySettings,
    *args: Any,
    sleep: Optional[Callable[[float], None]] = None,
    **kwargs: Any,
) -> Any:
    """Call fn, retrying RetryableProviderError; the last error is re-raised on exhaustion."""
    retrying = Retrying(
        stop=stop_after_attempt(settings.max_attempts),
        wait=_wait(settings),
        retry=retry_if_exception_type(RetryableProviderError),
        before_sleep=_log_retry,
        reraise=True,
        sleep=sleep or time.sleep,
    )
    return retrying(fn, *args, **kwargs)
