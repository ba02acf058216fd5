"""Probabilistic failure injection for exercising the retry machinery."""

import random

from invoicing.config import InvoiceConfig
from invoicing.services.exceptions import ServiceError


class SimulatedFailure(ServiceError):
    """Synthetic transient failure raised when injection is active."""

    pass


def should_simulate_failure(config: InvoiceConfig | None = None) -> bool:
    """Return True with probability ``failure_rate`` when simulation is enabled."""
    cfg = config or InvoiceConfig()
    if not cfg.simulate_failures:
        return False
    return random.random() < cfg.failure_rate


def raise_if_simulated_failure(config: InvoiceConfig | None = None, message: str = "Simulated failure") -> None:
    """Raise SimulatedFailure when should_simulate_failure() says so."""
    if should_simulate_failure(config):
        raise SimulatedFailure(message)
