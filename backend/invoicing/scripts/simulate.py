#!/usr/bin/env python
"""Simulate concurrent order placement to check numbering under injected failures."""

import asyncio
import time
from dataclasses import dataclass, field

import click
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from invoicing.config import InvoiceConfig
from invoicing.logging import setup_logging
from invoicing.services.invoices.invoice_service import InvoiceService
from invoicing.utils.backoff import calculate_backoff_delay
from invoicing.utils.failure_injection import raise_if_simulated_failure
from invoicing.utils.retry import run_with_retry

logger = structlog.get_logger(__name__)


@dataclass
class OrderOutcome:
    """Result of a single simulated order."""

    order_id: str
    invoice_id: str | None = None
    invoice_number: int | None = None
    attempts: int = 0
    error: str | None = None


@dataclass
class SimulationReport:
    """Summary of a simulation run."""

    outcomes: list[OrderOutcome] = field(default_factory=list)

    @property
    def successful(self) -> list[OrderOutcome]:
        return [o for o in self.outcomes if o.invoice_number is not None]

    @property
    def failed(self) -> list[OrderOutcome]:
        return [o for o in self.outcomes if o.invoice_number is None]

    @property
    def total_attempts(self) -> int:
        return sum(o.attempts for o in self.outcomes)

    @property
    def numbers(self) -> list[int]:
        return sorted(o.invoice_number for o in self.successful if o.invoice_number is not None)

    @property
    def has_duplicates(self) -> bool:
        return len(self.numbers) != len(set(self.numbers))

    @property
    def has_gaps(self) -> bool:
        numbers = self.numbers
        if not numbers:
            return False
        return len(set(numbers)) < numbers[-1] - numbers[0] + 1


async def simulate_orders(
    session_maker: async_sessionmaker[AsyncSession],
    config: InvoiceConfig,
    *,
    orders: int,
    max_attempts: int,
    prefix: str | None = None,
) -> SimulationReport:
    """Place ``orders`` synthetic orders concurrently and number their invoices."""
    run_id = prefix or f"test_order_{int(time.time() * 1000)}"
    report = SimulationReport()

    async def _place(index: int) -> OrderOutcome:
        outcome = OrderOutcome(order_id=f"{run_id}_{index}")
        log = logger.bind(order=index + 1, order_id=outcome.order_id)
        log.info("Starting simulated order")

        async with session_maker() as session:
            service = InvoiceService(session)
            try:
                pending = await service.create_pending_invoice(outcome.order_id)
                outcome.invoice_id = pending.id

                async def _assign() -> int | None:
                    outcome.attempts += 1
                    raise_if_simulated_failure(config)
                    invoice = await service.assign_invoice_number(pending.id)
                    return invoice.invoice_number

                def _on_attempt_fail(attempt: int, error: BaseException) -> None:
                    log.info(
                        "Attempt failed",
                        attempt=attempt,
                        error=str(error),
                        retry_in_ms=calculate_backoff_delay(attempt, config),
                    )

                outcome.invoice_number = await run_with_retry(
                    _assign,
                    config=config,
                    max_attempts=max_attempts,
                    on_attempt_fail=_on_attempt_fail,
                )
                log.info("Invoice created", invoice_number=outcome.invoice_number, attempts=outcome.attempts)
            except Exception as e:
                outcome.error = str(e)
                log.warning("Simulated order failed", attempts=outcome.attempts, error=outcome.error)
        return outcome

    report.outcomes = list(await asyncio.gather(*(_place(i) for i in range(orders))))
    return report


def _print_report(report: SimulationReport, orders: int) -> None:
    click.echo()
    click.echo("=" * 70)
    click.echo("SUMMARY")
    click.echo("=" * 70)
    click.echo(f"Total orders: {orders}")
    click.echo(f"Successful: {len(report.successful)}")
    click.echo(f"Failed: {len(report.failed)}")
    click.echo(f"Total attempts: {report.total_attempts}")
    if orders:
        click.echo(f"Average attempts per order: {report.total_attempts / orders:.2f}")

    click.echo("\nInvoice numbers assigned:")
    for outcome in sorted(report.successful, key=lambda o: o.invoice_number or 0):
        plural = "s" if outcome.attempts != 1 else ""
        click.echo(f"  #{outcome.invoice_number} ({outcome.attempts} attempt{plural})")

    if report.has_duplicates:
        click.secho("Duplicate invoice numbers detected!", fg="red")
    elif report.has_gaps:
        click.secho("Gaps in invoice numbers detected!", fg="red")
    elif report.numbers:
        click.secho(f"Sequence #{report.numbers[0]}..#{report.numbers[-1]} has no gaps or duplicates", fg="green")


@click.command()
@click.option("--orders", type=click.IntRange(min=1), default=10, show_default=True, help="Orders to place.")
@click.option(
    "--max-attempts",
    type=click.IntRange(min=1),
    default=10,
    show_default=True,
    help="Attempt cap per order.",
)
@click.option("--cleanup/--no-cleanup", default=False, help="Soft-delete the created invoices afterwards.")
def main(orders: int, max_attempts: int, cleanup: bool) -> None:
    """Place ORDERS synthetic orders at once and report the invoice numbers they get."""
    setup_logging()
    from invoicing.db import async_session_maker, dispose_engine

    config = InvoiceConfig.from_settings()
    click.echo("=" * 70)
    click.echo(f"INVOICE CREATION TEST - Simulating {orders} orders")
    click.echo(f"Failure rate: {config.failure_rate * 100:g}% (simulation {'on' if config.simulate_failures else 'off'})")
    click.echo("=" * 70)

    async def _run() -> SimulationReport:
        try:
            report = await simulate_orders(async_session_maker, config, orders=orders, max_attempts=max_attempts)
            if cleanup:
                invoice_ids = [o.invoice_id for o in report.outcomes if o.invoice_id]
                async with async_session_maker() as session:
                    await InvoiceService(session).delete_invoices(invoice_ids)
            return report
        finally:
            await dispose_engine()

    report = asyncio.run(_run())
    _print_report(report, orders)

    if report.has_duplicates or report.has_gaps:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
