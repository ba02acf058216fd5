"""Dramatiq background tasks package."""

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.brokers.stub import StubBroker

from invoicing.config import settings
from invoicing.logging import setup_logging

# Configure logging before anything else
setup_logging()

# Tests run against an in-memory broker, everything else against Redis
broker: dramatiq.Broker
if settings.environment.lower() == "test":
    broker = StubBroker()
    broker.emit_after("process_boot")
else:
    broker = RedisBroker(url=settings.redis_url)  # type: ignore[no-untyped-call]
dramatiq.set_broker(broker)

# Import all tasks to register them with Dramatiq (must be after broker setup)
import invoicing.tasks.invoices.order_placed  # noqa: E402, F401
import invoicing.tasks.invoices.retry_pending  # noqa: E402, F401
