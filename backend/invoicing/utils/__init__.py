"""Utility functions and helpers."""

from invoicing.utils.backoff import calculate_backoff_delay, sleep_ms, wait_backoff
from invoicing.utils.batching import chunk
from invoicing.utils.failure_injection import SimulatedFailure, raise_if_simulated_failure, should_simulate_failure
from invoicing.utils.retry import get_backoff_retrying, run_with_retry

__all__ = [
    "calculate_backoff_delay",
    "sleep_ms",
    "wait_backoff",
    "chunk",
    "SimulatedFailure",
    "raise_if_simulated_failure",
    "should_simulate_failure",
    "get_backoff_retrying",
    "run_with_retry",
]
