"""Exponential backoff policy shared by the retry layers."""

import asyncio

from tenacity import RetryCallState
from tenacity.wait import wait_base

from invoicing.config import InvoiceConfig

# The cap is reached long before this, it only keeps unbounded retry loops from building huge ints
_MAX_EXPONENT = 62


def calculate_backoff_delay(attempt: int, config: InvoiceConfig | None = None) -> int:
    """Return the delay in milliseconds to wait after a failed attempt.

    ``min(base * 2 ** (attempt - 1), cap)`` with a 1-indexed attempt. No jitter.
    """
    if attempt < 1:
        raise ValueError(f"Attempt must be >= 1, got {attempt}")
    cfg = config or InvoiceConfig()
    delay = cfg.base_backoff_delay * 2 ** min(attempt - 1, _MAX_EXPONENT)
    return min(delay, cfg.max_backoff_delay)


class wait_backoff(wait_base):
    """Tenacity wait strategy driven by calculate_backoff_delay()."""

    def __init__(self, config: InvoiceConfig | None = None):
        self.config = config or InvoiceConfig()

    def __call__(self, retry_state: RetryCallState) -> float:
        return calculate_backoff_delay(retry_state.attempt_number, self.config) / 1000


async def sleep_ms(milliseconds: float) -> None:
    """Suspend the calling task for the given number of milliseconds."""
    await asyncio.sleep(milliseconds / 1000)
