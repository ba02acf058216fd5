#!/usr/bin/env python
"""Scheduler that enqueues the pending invoice sweep at a fixed cadence."""

import time

import click
import structlog

from invoicing.config import settings
from invoicing.logging import setup_logging

setup_logging()
logger = structlog.get_logger(__name__)


@click.command()
@click.option(
    "--interval",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Seconds between sweeps. Defaults to INVOICE_RETRY_INTERVAL.",
)
@click.option("--once", is_flag=True, help="Enqueue a single sweep and exit.")
def main(interval: float | None, once: bool) -> None:
    """Enqueue retry_pending_invoices every INTERVAL seconds.

    Overlapping sweeps are skipped by the sweep's own Redis lock.
    """
    from invoicing.tasks.invoices.retry_pending import retry_pending_invoices

    every = interval or settings.invoice_retry_interval
    logger.info("Starting pending invoice scheduler", interval=every)

    next_run = time.monotonic()
    while True:
        retry_pending_invoices.send()
        logger.debug("Enqueued pending invoice sweep")
        if once:
            return

        # Fixed cadence: schedule from the previous slot, not from now
        next_run += every
        time.sleep(max(0.0, next_run - time.monotonic()))


if __name__ == "__main__":
    main()
