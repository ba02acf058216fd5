"""Race-condition-safe auto-increment helper using optimistic retries."""

from collections.abc import AsyncIterator
from typing import Any

import structlog
from sqlalchemy import Index, UniqueConstraint, func, select
from sqlalchemy.exc import IntegrityError, InvalidRequestError
from sqlalchemy.ext.asyncio import AsyncSession

from invoicing.utils.backoff import sleep_ms

logger = structlog.get_logger(__name__)

UNIQUE_VIOLATION_SQLSTATE = "23505"


def is_unique_violation(
    error: BaseException | None,
    constraint: Index | UniqueConstraint | None = None,
) -> bool:
    """Check whether an error is a unique constraint violation.

    With a constraint, the error must also name it: PostgreSQL reports the
    constraint name, SQLite reports the "table.column" pairs it covers.
    """
    if not isinstance(error, IntegrityError):
        return False

    message = str(error).lower()
    code = getattr(error.orig, "sqlstate", None) or getattr(error.orig, "pgcode", None)
    if code != UNIQUE_VIOLATION_SQLSTATE and "unique" not in message and "duplicate" not in message:
        return False

    if constraint is None:
        return True
    if constraint.name and f'"{constraint.name}"'.lower() in message:
        return True
    try:
        table = constraint.table
    except InvalidRequestError:
        return False  # Constraint not attached to a table
    if table is None:
        return False
    qualified = [f"{table.name}.{column.name}".lower() for column in constraint.columns]
    return bool(qualified) and all(name in message for name in qualified)


class AutoIncrementOnConflict:
    """Async iterator that allocates MAX(column) + 1 and retries on unique conflict.

    Each iteration provides an attempt used as an async context manager. A clean
    exit commits the transaction and stops the iteration. A violation of the
    given constraint rolls back, waits ``retry_delay_ms * retry_count`` and starts
    a new attempt, up to ``max_retries`` retries; after that the conflict error
    propagates. Any other error rolls back and propagates immediately.

    Usage:
        async for attempt in AutoIncrementOnConflict(
            session=self.session,
            increment_column=Invoice.invoice_number,
            filter_columns={Invoice.status: InvoiceStatus.CREATED, Invoice.deleted_at: None},
            constraint=INVOICE_NUMBER_UNIQUE_INDEX,
        ):
            async with attempt:
                number = await attempt.next_value()
                await write_number(number)
    """

    def __init__(
        self,
        session: AsyncSession,
        increment_column: Any,  # InstrumentedAttribute at runtime
        filter_columns: dict[Any, Any],  # InstrumentedAttribute keys
        constraint: Index | UniqueConstraint,
        max_retries: int = 5,
        retry_delay_ms: float = 100,
        log_context: dict[str, Any] | None = None,
    ):
        self.session = session
        self.increment_column = increment_column
        self.filter_columns = filter_columns
        self.constraint = constraint
        self.max_retries = max_retries
        self.retry_delay_ms = retry_delay_ms
        self.log_context = log_context or {}
        self.attempt_number = 0
        self.retry_count = 0
        self._value: int | None = None
        self._success = False

        if not self.constraint.name:
            raise ValueError("Constraint must have a name for conflict detection.")

    async def __aiter__(self) -> AsyncIterator["AutoIncrementOnConflict"]:
        while not self._success:
            if self.attempt_number > 0:
                await sleep_ms(self.retry_delay_ms * self.retry_count)
            self.attempt_number += 1
            self._value = None
            yield self

    @property
    def value(self) -> int:
        if self._value is None:
            raise RuntimeError("Value not yet calculated for this attempt.")
        return self._value

    async def next_value(self) -> int:
        """Read the current maximum and return the candidate for this attempt."""
        filters = [col == val for col, val in self.filter_columns.items()]
        stmt = select(func.coalesce(func.max(self.increment_column), 0) + 1).where(*filters)
        result = await self.session.execute(stmt)
        value: int = result.scalar_one()
        self._value = value
        return value

    async def __aenter__(self) -> "AutoIncrementOnConflict":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> bool:
        if exc_type is None:
            await self.session.commit()
            self._success = True
            return False

        await self.session.rollback()

        if not is_unique_violation(exc_val, self.constraint):
            return False  # Re-raise non-conflict errors

        if self.retry_count >= self.max_retries:
            logger.error(
                "Unique constraint conflict, retries exhausted",
                attempt=self.attempt_number,
                max_retries=self.max_retries,
                constraint=self.constraint.name,
                value=self._value,
                **self.log_context,
            )
            return False

        self.retry_count += 1
        logger.warning(
            "Unique constraint conflict, retrying",
            attempt=self.attempt_number,
            retry=self.retry_count,
            max_retries=self.max_retries,
            constraint=self.constraint.name,
            value=self._value,
            **self.log_context,
        )
        return True  # Suppress exception, allow retry
