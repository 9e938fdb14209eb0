"""
Pytest fixtures for the inventory ledger test suite.

Provides:
- An in-memory SQLite LedgerStore migrated to the latest schema
- Per-test sessions that roll back on teardown
- Service and selector fixtures wired to a deterministic clock
- Catalog fixtures (products with prices, a customer, a supplier)
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from ledger_kernel.db.engine import LedgerStore
from ledger_kernel.domain.clock import ClockService, DeterministicClock
from ledger_kernel.domain.policy import LedgerPolicy
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.selectors import InvoiceSelector, PriceSelector, StockSelector
from ledger_kernel.services import CatalogService, InventoryLedger, InvoiceProcessor

# Business date used by most tests.  The deterministic clock reads
# 2024-01-01T12:00Z, which is 14:00 on the same day in Beirut.
BUSINESS_DATE = "2024-01-01"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.apply_movement(...)
            logs = captured_logs()
            assert any(r["message"] == "movement_applied" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Clock and policy
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock(datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def clock_service(deterministic_clock) -> ClockService:
    return ClockService(deterministic_clock)


@pytest.fixture
def policy() -> LedgerPolicy:
    return LedgerPolicy()


# =============================================================================
# Store and session
# =============================================================================


@pytest.fixture
def store(clock_service) -> Generator[LedgerStore, None, None]:
    """An opened in-memory store at the latest schema version."""
    ledger_store = LedgerStore("sqlite://", clock_service=clock_service).open()
    yield ledger_store
    ledger_store.close()


@pytest.fixture
def session(store) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    Opens a dedicated connection with an outer transaction and a session
    that joins it.  Services' SAVEPOINTs nest inside; teardown rolls the
    outer transaction back.
    """
    conn = store.engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# Service fixtures


@pytest.fixture
def catalog(session, clock_service) -> CatalogService:
    return CatalogService(session, clock_service)


@pytest.fixture
def ledger(session, clock_service, policy) -> InventoryLedger:
    return InventoryLedger(session, clock_service, policy)


@pytest.fixture
def processor(session, clock_service, policy, ledger) -> InvoiceProcessor:
    return InvoiceProcessor(session, clock_service, policy, ledger)


@pytest.fixture
def stock_selector(session) -> StockSelector:
    return StockSelector(session)


@pytest.fixture
def invoice_selector(session) -> InvoiceSelector:
    return InvoiceSelector(session)


@pytest.fixture
def price_selector(session) -> PriceSelector:
    return PriceSelector(session)


# =============================================================================
# Catalog data
# =============================================================================


@pytest.fixture
def create_product(catalog):
    """Factory: product with a retail/wholesale price effective 2023-12-01."""

    def _create(name="Widget", retail="10.00", wholesale="8.00", effective_date="2023-12-01"):
        product = catalog.create_product(name)
        if retail is not None:
            catalog.set_product_price(product.id, retail, wholesale, effective_date)
        return product

    return _create


@pytest.fixture
def product(create_product):
    return create_product()


@pytest.fixture
def customer(catalog):
    return catalog.create_customer("Walk-in Customer", phone="01-000000")


@pytest.fixture
def supplier(catalog):
    return catalog.create_supplier("Main Supplier")


@pytest.fixture
def stocked_product(product, ledger):
    """Product with 20 units at cost 5.00 on the business date."""
    ledger.apply_movement(product.id, None, BUSINESS_DATE, 20, unit_cost=Decimal("5.00"))
    return product
