"""
StockSelector -- read side of the inventory ledger.

Carry-forward lookup, per-day history, low stock, recent movements and the
average cost listing.  InventoryLedger.get_snapshot deliberately does not
carry forward; callers that want "the stock as of D" use
``snapshot_on_or_before``.
"""

from sqlalchemy import and_, func, select

from ledger_kernel.domain.dtos import MovementRecord, StockSnapshot
from ledger_kernel.models import DailyStock, Product, StockMovement
from ledger_kernel.selectors.base import BaseSelector


def snapshot_to_dto(row: DailyStock) -> StockSnapshot:
    return StockSnapshot(
        product_id=row.product_id,
        date=row.date,
        available_qty=row.available_qty,
        avg_cost=row.avg_cost,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def movement_to_dto(row: StockMovement) -> MovementRecord:
    return MovementRecord(
        id=row.id,
        product_id=row.product_id,
        invoice_id=row.invoice_id,
        invoice_date=row.invoice_date,
        quantity_before=row.quantity_before,
        quantity_change=row.quantity_change,
        quantity_after=row.quantity_after,
        unit_cost=row.unit_cost,
        created_at=row.created_at,
    )


class StockSelector(BaseSelector):
    """Queries over daily_stock and stock_movements."""

    def snapshot_on_or_before(self, product_id: str, business_date: str) -> StockSnapshot | None:
        """Most recent snapshot dated ``business_date`` or earlier."""
        stmt = (
            select(DailyStock)
            .where(
                DailyStock.product_id == product_id,
                DailyStock.date <= business_date,
            )
            .order_by(DailyStock.date.desc())
            .limit(1)
        )
        row = self.session.execute(stmt).scalar_one_or_none()
        return snapshot_to_dto(row) if row is not None else None

    def daily_history(
        self,
        product_id: str | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> list[StockSnapshot]:
        """Snapshots in date order, optionally filtered by product and range."""
        stmt = select(DailyStock)
        if product_id is not None:
            stmt = stmt.where(DailyStock.product_id == product_id)
        if start is not None:
            stmt = stmt.where(DailyStock.date >= start)
        if end is not None:
            stmt = stmt.where(DailyStock.date <= end)
        stmt = stmt.order_by(DailyStock.date, DailyStock.product_id)
        return [snapshot_to_dto(row) for row in self.session.execute(stmt).scalars()]

    def low_stock(self, business_date: str, threshold: int) -> list[StockSnapshot]:
        """Snapshots for ``business_date`` with available_qty below ``threshold``."""
        stmt = (
            select(DailyStock)
            .where(
                DailyStock.date == business_date,
                DailyStock.available_qty < threshold,
            )
            .order_by(DailyStock.available_qty, DailyStock.product_id)
        )
        return [snapshot_to_dto(row) for row in self.session.execute(stmt).scalars()]

    def recent_movements(self, limit: int = 50) -> list[MovementRecord]:
        """Latest movements, newest business date first."""
        stmt = (
            select(StockMovement)
            .order_by(StockMovement.invoice_date.desc(), StockMovement.created_at.desc())
            .limit(limit)
        )
        return [movement_to_dto(row) for row in self.session.execute(stmt).scalars()]

    def movements_for_invoice(self, invoice_id: str) -> list[MovementRecord]:
        stmt = (
            select(StockMovement)
            .where(StockMovement.invoice_id == invoice_id)
            .order_by(StockMovement.created_at)
        )
        return [movement_to_dto(row) for row in self.session.execute(stmt).scalars()]

    def movements_for_product(self, product_id: str) -> list[MovementRecord]:
        stmt = (
            select(StockMovement)
            .where(StockMovement.product_id == product_id)
            .order_by(StockMovement.invoice_date, StockMovement.created_at)
        )
        return [movement_to_dto(row) for row in self.session.execute(stmt).scalars()]

    def avg_costs(self, business_date: str) -> list[tuple[str, str, StockSnapshot]]:
        """
        (product_id, product name, latest snapshot on or before the date)
        for every product with stock history, ordered by name.
        """
        latest = (
            select(
                DailyStock.product_id.label("product_id"),
                func.max(DailyStock.date).label("max_date"),
            )
            .where(DailyStock.date <= business_date)
            .group_by(DailyStock.product_id)
            .subquery()
        )
        stmt = (
            select(DailyStock, Product.name)
            .join(
                latest,
                and_(
                    DailyStock.product_id == latest.c.product_id,
                    DailyStock.date == latest.c.max_date,
                ),
            )
            .join(Product, Product.id == DailyStock.product_id)
            .order_by(Product.name)
        )
        return [
            (row.product_id, name, snapshot_to_dto(row))
            for row, name in self.session.execute(stmt).all()
        ]
