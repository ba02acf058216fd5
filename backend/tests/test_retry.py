"""Tests for the retry engine."""

import pytest

from invoicing.config import InvoiceConfig
from invoicing.utils.retry import get_backoff_retrying, run_with_retry

FAST = InvoiceConfig(base_backoff_delay=1, max_backoff_delay=2)


class TransientError(Exception):
    pass


class PermanentError(Exception):
    pass


class FlakyOperation:
    """Fails a given number of times before returning a value."""

    def __init__(self, failures: int, error: Exception | None = None, result: str = "ok"):
        self.failures = failures
        self.error = error or TransientError("transient")
        self.result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.result


class TestRunWithRetrySuccess:
    async def test_first_call_success_invokes_once(self):
        operation = FlakyOperation(failures=0)
        failures: list[tuple[int, BaseException]] = []

        result = await run_with_retry(operation, config=FAST, on_attempt_fail=lambda a, e: failures.append((a, e)))

        assert result == "ok"
        assert operation.calls == 1
        assert failures == []

    async def test_fails_twice_then_succeeds(self):
        operation = FlakyOperation(failures=2)
        failures: list[tuple[int, BaseException]] = []

        result = await run_with_retry(operation, config=FAST, on_attempt_fail=lambda a, e: failures.append((a, e)))

        assert result == "ok"
        assert operation.calls == 3
        assert [attempt for attempt, _ in failures] == [1, 2]
        assert all(error is operation.error for _, error in failures)

    async def test_unbounded_by_default(self):
        operation = FlakyOperation(failures=25)

        assert await run_with_retry(operation, config=FAST) == "ok"
        assert operation.calls == 26


class TestRunWithRetryAbort:
    async def test_abort_predicate_fails_fast(self):
        error = PermanentError("permanent")
        operation = FlakyOperation(failures=10, error=error)
        failures: list[int] = []

        with pytest.raises(PermanentError) as exc_info:
            await run_with_retry(
                operation,
                config=FAST,
                on_attempt_fail=lambda a, e: failures.append(a),
                should_abort=lambda e: isinstance(e, PermanentError),
            )

        assert exc_info.value is error
        assert operation.calls == 1
        assert failures == []

    async def test_abort_predicate_lets_other_errors_retry(self):
        operation = FlakyOperation(failures=2)

        result = await run_with_retry(
            operation,
            config=FAST,
            should_abort=lambda e: isinstance(e, PermanentError),
        )

        assert result == "ok"
        assert operation.calls == 3


class TestRunWithRetryCap:
    async def test_max_attempts_reraises_last_error(self):
        operation = FlakyOperation(failures=100)
        failures: list[int] = []

        with pytest.raises(TransientError):
            await run_with_retry(
                operation,
                config=FAST,
                max_attempts=3,
                on_attempt_fail=lambda a, e: failures.append(a),
            )

        assert operation.calls == 3
        assert failures == [1, 2, 3]

    async def test_success_on_last_allowed_attempt(self):
        operation = FlakyOperation(failures=2)

        assert await run_with_retry(operation, config=FAST, max_attempts=3) == "ok"
        assert operation.calls == 3


class TestRunWithRetryHooks:
    async def test_hook_errors_propagate(self):
        operation = FlakyOperation(failures=5)

        def _hook(attempt: int, error: BaseException) -> None:
            raise RuntimeError("hook failed")

        with pytest.raises(RuntimeError, match="hook failed"):
            await run_with_retry(operation, config=FAST, on_attempt_fail=_hook)

        assert operation.calls == 1

    async def test_sleeps_backoff_delay_between_attempts(self):
        operation = FlakyOperation(failures=3)
        sleeps: list[float] = []

        async def _sleep(seconds: float) -> None:
            sleeps.append(seconds)

        retrying = get_backoff_retrying(InvoiceConfig(base_backoff_delay=1000, max_backoff_delay=3000)).copy(sleep=_sleep)

        assert await retrying(operation) == "ok"
        assert sleeps == [1.0, 2.0, 3.0]
