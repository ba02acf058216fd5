"""Tests for the order placed handler."""

from contextlib import asynccontextmanager

import pytest

from invoicing.config import InvoiceConfig
from invoicing.models.enums import InvoiceStatus
from invoicing.services.invoices.exceptions import InvoiceNotFound
from invoicing.services.invoices.invoice_service import InvoiceService
from invoicing.tasks.invoices import order_placed
from invoicing.tasks.invoices.order_placed import create_invoice
from invoicing.tasks.invoices.retry_pending import sweep_pending_invoices
from invoicing.utils.failure_injection import SimulatedFailure


@pytest.fixture
def always_fail() -> InvoiceConfig:
    return InvoiceConfig(failure_rate=1.0, simulate_failures=True, base_backoff_delay=1, max_backoff_delay=4)


async def test_creates_numbered_invoice(session, fast_config, count_invoices):
    invoice = await create_invoice(session, "order_1", fast_config)

    assert invoice.order_id == "order_1"
    assert invoice.invoice_number == 1
    assert invoice.status == InvoiceStatus.CREATED
    assert await count_invoices() == 1


async def test_redelivered_event_keeps_invoice(session, fast_config, count_invoices):
    first = await create_invoice(session, "order_1", fast_config)
    second = await create_invoice(session, "order_1", fast_config)

    assert second.id == first.id
    assert second.invoice_number == first.invoice_number
    assert await count_invoices() == 1


async def test_transient_failures_are_retried(session, fast_config, monkeypatch):
    failures = iter([True, True, False])
    monkeypatch.setattr(order_placed, "raise_if_simulated_failure", _fail_when(failures))

    invoice = await create_invoice(session, "order_1", fast_config)

    assert invoice.invoice_number == 1


async def test_capped_attempts_leave_invoice_pending_for_sweep(
    session, session_maker, fast_config, always_fail, count_invoices
):
    with pytest.raises(SimulatedFailure):
        await create_invoice(session, "order_1", always_fail, max_attempts=3)

    assert await count_invoices(InvoiceStatus.PENDING) == 1

    result = await sweep_pending_invoices(session_maker, fast_config)

    assert result.assigned == 1
    assert await count_invoices(InvoiceStatus.CREATED) == 1


async def test_missing_invoice_aborts_without_retry(session, fast_config, monkeypatch):
    service = InvoiceService(session)
    calls = 0

    async def _vanished(invoice_id: str):
        nonlocal calls
        calls += 1
        raise InvoiceNotFound(invoice_id)

    monkeypatch.setattr(service, "assign_invoice_number", _vanished)

    with pytest.raises(InvoiceNotFound):
        await create_invoice(session, "order_1", fast_config, max_attempts=10, service=service)

    assert calls == 1


async def test_handler_logs_and_swallows_errors(session_maker, always_fail, monkeypatch, count_invoices):
    @asynccontextmanager
    async def _session():
        async with session_maker() as session:
            yield session

    async def _capped(session, order_id, config):
        return await create_invoice(session, order_id, config, max_attempts=2)

    monkeypatch.setattr(order_placed, "task_db_session", _session)
    monkeypatch.setattr(order_placed, "create_invoice", _capped)

    await order_placed._create_invoice_for_order_async("order_1", always_fail)

    assert await count_invoices(InvoiceStatus.PENDING) == 1


def _fail_when(outcomes):
    def _inject(config, message="Simulated failure"):
        if next(outcomes):
            raise SimulatedFailure(message)

    return _inject


def test_handler_actor_has_no_time_limit():
    actor = order_placed.create_invoice_for_order

    assert actor.options["max_retries"] == 0
    assert actor.options["time_limit"] == float("inf")
