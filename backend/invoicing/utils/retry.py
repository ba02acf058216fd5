"""Retry with exponential backoff using tenacity."""

from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    stop_never,
)

from invoicing.config import InvoiceConfig
from invoicing.utils.backoff import wait_backoff

T = TypeVar("T")

AttemptFailHook = Callable[[int, BaseException], None]
AbortPredicate = Callable[[BaseException], bool]


def get_backoff_retrying(
    config: InvoiceConfig | None = None,
    *,
    max_attempts: int | None = None,
    on_attempt_fail: AttemptFailHook | None = None,
    should_abort: AbortPredicate | None = None,
) -> AsyncRetrying:
    """Get configured AsyncRetrying following the invoice backoff policy.

    Usage:
        async for attempt in get_backoff_retrying(config, max_attempts=3):
            with attempt:
                invoice = await service.assign_invoice_number(invoice_id)

    Args:
        config: Backoff parameters. Uses defaults if not provided.
        max_attempts: Total attempts before the last error is re-raised. None retries forever.
        on_attempt_fail: Called with (attempt, error) after every retriable failure,
            including the last one. Errors raised by the hook propagate.
        should_abort: Errors it accepts are re-raised immediately, without calling the hook.

    Returns:
        AsyncRetrying instance that re-raises the original error.
    """
    cfg = config or InvoiceConfig()

    def _is_retriable(error: BaseException) -> bool:
        if not isinstance(error, Exception):
            return False
        return should_abort is None or not should_abort(error)

    def _after(retry_state: RetryCallState) -> None:
        if on_attempt_fail is None or retry_state.outcome is None:
            return
        error = retry_state.outcome.exception()
        assert error is not None
        on_attempt_fail(retry_state.attempt_number, error)

    return AsyncRetrying(
        retry=retry_if_exception(_is_retriable),
        stop=stop_after_attempt(max_attempts) if max_attempts is not None else stop_never,
        wait=wait_backoff(cfg),
        after=_after,
        reraise=True,
    )


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    config: InvoiceConfig | None = None,
    max_attempts: int | None = None,
    on_attempt_fail: AttemptFailHook | None = None,
    should_abort: AbortPredicate | None = None,
) -> T:
    """Invoke ``operation`` until it succeeds, backing off between attempts.

    Unbounded unless ``max_attempts`` is given.
    """
    retrying = get_backoff_retrying(
        config,
        max_attempts=max_attempts,
        on_attempt_fail=on_attempt_fail,
        should_abort=should_abort,
    )
    result: T = await retrying(operation)
    return result
