#!/usr/bin/env python
"""Dramatiq worker entry point with pending invoice sweep dispatch."""

import os
import shutil
import sys

import structlog

from invoicing.logging import setup_logging

setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    """Dispatch a pending invoice sweep and start Dramatiq workers."""
    # Import tasks to register broker (this triggers invoicing.tasks.__init__.py)
    from invoicing.tasks.invoices.retry_pending import retry_pending_invoices

    # Invoices left pending while no worker was running are numbered right away
    retry_pending_invoices.send()
    logger.info("Dispatched pending invoice sweep")

    # Exec into dramatiq CLI with any additional args
    dramatiq_path = shutil.which("dramatiq")
    if dramatiq_path is None:
        logger.error("Dramatiq executable not found in PATH")
        sys.exit(1)

    os.execv(dramatiq_path, [dramatiq_path, "invoicing.tasks", *sys.argv[1:]])


if __name__ == "__main__":
    main()
