"""Retry helpers using tenacity.

Two shapes are needed: provider calls report transient trouble as a returned
``TransientFailure`` outcome, while step-level work (embedding batches, router
re-runs) raises. Both use exponential backoff with a fixed attempt budget.
"""

from __future__ import annotations

from typing import Any, Callable

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from vidscribe.utils.progress import log_warning


def _warn_before_sleep(label: str) -> Callable[[RetryCallState], None]:
    def _log(state: RetryCallState) -> None:
        wait = state.next_action.sleep if state.next_action else 0.0
        log_warning(f"{label}: attempt {state.attempt_number} failed, retrying in {wait:.1f}s")

    return _log


def retrying_on_result(
    is_retryable: Callable[[Any], bool],
    *,
    max_attempts: int,
    backoff_seconds: float,
    max_backoff_seconds: float = 30.0,
    label: str = "retry",
) -> Retrying:
    """Build a Retrying controller that repeats a call while its result is retryable.

    When the budget runs out the last result is returned instead of raising.
    """
    return Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=backoff_seconds, min=0, max=max_backoff_seconds),
        retry=retry_if_result(is_retryable),
        retry_error_callback=lambda state: state.outcome.result(),
        before_sleep=_warn_before_sleep(label),
    )


def retrying_on_exception(
    exceptions: tuple[type[BaseException], ...] | Callable[[BaseException], bool],
    *,
    max_attempts: int,
    backoff_seconds: float,
    max_backoff_seconds: float = 30.0,
    label: str = "retry",
) -> Retrying:
    """Build a Retrying controller for step-level work that raises on failure.

    `exceptions` is either exception types or a predicate over the raised
    exception. The original exception is re-raised once the budget is spent.
    """
    if isinstance(exceptions, tuple):
        should_retry = retry_if_exception_type(exceptions)
    else:
        should_retry = retry_if_exception(exceptions)
    return Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=backoff_seconds, min=0, max=max_backoff_seconds),
        retry=should_retry,
        reraise=True,
        before_sleep=_warn_before_sleep(label),
    )
