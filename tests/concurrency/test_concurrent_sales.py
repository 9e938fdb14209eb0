"""
Concurrency tests for the serialized-writer model.

Every transaction begins with BEGIN IMMEDIATE, so concurrent sales against
one file-backed store must behave as if applied one at a time.

Run with: pytest tests/concurrency -v
Skip with: pytest -m "not slow_locks"
"""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from threading import Barrier

import pytest
from sqlalchemy import func, select

from ledger_kernel.db.engine import LedgerStore
from ledger_kernel.domain.dtos import InvoiceItemInput
from ledger_kernel.exceptions import InsufficientStockError
from ledger_kernel.models import DailyStock, Invoice, StockMovement
from ledger_kernel.services import CatalogService, InventoryLedger, InvoiceProcessor

pytestmark = pytest.mark.slow_locks

DAY = "2024-01-01"
WORKERS = 8


@pytest.fixture
def file_store(tmp_path, clock_service):
    store = LedgerStore(f"sqlite:///{tmp_path / 'ledger.db'}", clock_service=clock_service).open()
    yield store
    store.close()


@pytest.fixture
def seeded(file_store, clock_service):
    """A product with 10 units and a customer, committed."""
    with file_store.session_scope() as session:
        catalog = CatalogService(session, clock_service)
        product = catalog.create_product("Bread")
        catalog.set_product_price(product.id, "1.00", "0.80", "2023-12-01")
        customer = catalog.create_customer("Counter")
        InventoryLedger(session, clock_service).apply_movement(
            product.id, None, DAY, 10, unit_cost=Decimal("0.50")
        )
    return product, customer


class TestConcurrentSales:

    def test_no_oversell(self, file_store, seeded, clock_service):
        product, customer = seeded
        barrier = Barrier(WORKERS)

        def sell(_):
            barrier.wait()
            try:
                with file_store.session_scope() as session:
                    InvoiceProcessor(session, clock_service).create_invoice(
                        "sell", customer.id, DAY, [InvoiceItemInput(product.id, 3)]
                    )
                return "sold"
            except InsufficientStockError:
                return "refused"

        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            outcomes = list(pool.map(sell, range(WORKERS)))

        assert outcomes.count("sold") == 3
        assert outcomes.count("refused") == WORKERS - 3

        with file_store.session_scope() as session:
            snapshot = session.execute(
                select(DailyStock).where(DailyStock.product_id == product.id)
            ).scalar_one()
            assert snapshot.available_qty == 1
            assert session.execute(select(func.count()).select_from(Invoice)).scalar_one() == 3

            movements = session.execute(
                select(StockMovement)
                .where(StockMovement.product_id == product.id)
                .order_by(StockMovement.quantity_before)
            ).scalars().all()
            # Each movement starts where another ended: a single chain 0 -> 10 -> 7 -> 4 -> 1
            assert [(m.quantity_before, m.quantity_after) for m in movements] == [
                (0, 10),
                (4, 1),
                (7, 4),
                (10, 7),
            ]

    def test_concurrent_first_movements_share_one_snapshot(
        self, file_store, seeded, clock_service
    ):
        product, _ = seeded
        barrier = Barrier(WORKERS)

        def receive(_):
            barrier.wait()
            with file_store.session_scope() as session:
                InventoryLedger(session, clock_service).apply_movement(
                    product.id, None, "2024-01-02", 1, unit_cost=Decimal("2")
                )

        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            list(pool.map(receive, range(WORKERS)))

        with file_store.session_scope() as session:
            rows = session.execute(
                select(DailyStock).where(DailyStock.date == "2024-01-02")
            ).scalars().all()
            assert len(rows) == 1
            assert rows[0].available_qty == WORKERS
            assert rows[0].avg_cost == Decimal("2")
