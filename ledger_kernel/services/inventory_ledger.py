"""
InventoryLedger -- daily stock snapshots and the append-only movement log.

Responsibility:
    Applies signed quantity changes to a product's DailyStock row for a
    business date, recomputes weighted average cost on increases, and
    appends one immutable StockMovement per application.  Also rolls the
    previous day's closing state forward as a day's opening snapshot.

Architecture position:
    Kernel > Services -- imperative shell.  Called by InvoiceProcessor for
    every invoice line.  Uses domain/costing.py for the arithmetic.

Invariants enforced:
    - quantity_after == quantity_before + quantity_change on every movement.
    - One DailyStock row per (product, date).  Rows are created lazily with
      qty 0 and avg_cost 0 on the first movement for that pair.
    - Decreases below zero raise InsufficientStockError unless the policy
      enables backorder mode.
    - Atomicity: the snapshot write and movement append share one SAVEPOINT.
      Either both persist or neither does.

Failure modes:
    - InvalidMovementError: zero or non-integer change, malformed business
      date, or a missing/negative unit cost on an increase.
    - ProductNotFoundError: unknown product.
    - InsufficientStockError: recoverable.  Nothing was written.
    - SnapshotUniquenessError: a duplicate snapshot reached the database.
      Indicates a ledger bug.
"""

from decimal import Decimal

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.db.types import to_decimal
from ledger_kernel.domain.clock import ClockService, validate_business_date
from ledger_kernel.domain.costing import compute_transition
from ledger_kernel.domain.dtos import MovementRecord, StockSnapshot
from ledger_kernel.domain.policy import LedgerPolicy
from ledger_kernel.exceptions import (
    InsufficientStockError,
    InvalidMovementError,
    ProductNotFoundError,
    SnapshotUniquenessError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models import DailyStock, Product, StockMovement
from ledger_kernel.selectors.stock_selector import movement_to_dto, snapshot_to_dto
from ledger_kernel.services.base import BaseService

logger = get_logger("services.inventory_ledger")


class InventoryLedger(BaseService[DailyStock]):
    """
    Owner of DailyStock and StockMovement.

    Contract:
        Flushes within the caller's transaction.  Each ``apply_movement``
        call is atomic on its own (SAVEPOINT) and also composes into a
        larger unit when the caller holds an outer SAVEPOINT.
    """

    def __init__(
        self,
        session: Session,
        clock_service: ClockService | None = None,
        policy: LedgerPolicy | None = None,
    ):
        super().__init__(session, clock_service)
        self.policy = policy or LedgerPolicy()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def apply_movement(
        self,
        product_id: str,
        invoice_id: str | None,
        business_date: str,
        quantity_change: int,
        unit_cost: Decimal | str | int | None = None,
    ) -> MovementRecord:
        """
        Apply a signed quantity change to ``product_id`` on ``business_date``.

        Args:
            product_id: Product whose stock moves.
            invoice_id: Invoice that caused the movement (audit reference).
            business_date: ``YYYY-MM-DD`` snapshot key.
            quantity_change: Non-zero signed integer.
            unit_cost: Required and >= 0 when ``quantity_change > 0``.
                Ignored for decreases.

        Returns:
            The appended movement.

        Raises:
            InvalidMovementError, ProductNotFoundError,
            InsufficientStockError, SnapshotUniquenessError.
        """
        cost = self._validate_movement(product_id, business_date, quantity_change, unit_cost)

        try:
            with self.session.begin_nested():
                movement = self._apply(product_id, invoice_id, business_date, quantity_change, cost)
        except IntegrityError as exc:
            if "daily_stock" in str(exc.orig):
                logger.critical(
                    "snapshot_uniqueness_violation",
                    extra={"product_id": product_id, "business_date": business_date},
                )
                raise SnapshotUniquenessError(product_id, business_date) from exc
            raise

        logger.info(
            "movement_applied",
            extra={
                "product_id": product_id,
                "invoice_id": invoice_id,
                "business_date": business_date,
                "quantity_before": movement.quantity_before,
                "quantity_change": movement.quantity_change,
                "quantity_after": movement.quantity_after,
            },
        )
        return movement_to_dto(movement)

    def _validate_movement(
        self,
        product_id: str,
        business_date: str,
        quantity_change,
        unit_cost,
    ) -> Decimal | None:
        if (
            isinstance(quantity_change, bool)
            or not isinstance(quantity_change, int)
            or quantity_change == 0
        ):
            raise InvalidMovementError(
                product_id, f"quantity_change must be a non-zero integer, got {quantity_change!r}"
            )
        try:
            validate_business_date(business_date)
        except ValueError as exc:
            raise InvalidMovementError(product_id, str(exc)) from exc

        if self.session.get(Product, product_id) is None:
            raise ProductNotFoundError(product_id)

        if quantity_change < 0:
            return None
        if unit_cost is None:
            raise InvalidMovementError(product_id, "unit_cost is required for a stock increase")
        try:
            cost = to_decimal(unit_cost)
        except ValueError as exc:
            raise InvalidMovementError(product_id, str(exc)) from exc
        if cost < 0:
            raise InvalidMovementError(product_id, f"unit_cost cannot be negative: {cost}")
        return cost

    def _apply(
        self,
        product_id: str,
        invoice_id: str | None,
        business_date: str,
        quantity_change: int,
        unit_cost: Decimal | None,
    ) -> StockMovement:
        now = self.clock_service.now()
        row = self._load_or_create(product_id, business_date, now)

        transition = compute_transition(
            row.available_qty,
            row.avg_cost,
            quantity_change,
            unit_cost,
            self.policy.cost_decimal_places,
        )

        if transition.quantity_after < 0 and not self.policy.allow_negative_stock:
            logger.warning(
                "insufficient_stock",
                extra={
                    "product_id": product_id,
                    "business_date": business_date,
                    "available": transition.quantity_before,
                    "attempted_change": quantity_change,
                },
            )
            raise InsufficientStockError(
                product_id=product_id,
                business_date=business_date,
                available=transition.quantity_before,
                attempted_change=quantity_change,
            )

        row.available_qty = transition.quantity_after
        row.avg_cost = transition.avg_cost_after
        row.updated_at = now

        movement = StockMovement(
            product_id=product_id,
            invoice_id=invoice_id,
            invoice_date=business_date,
            quantity_before=transition.quantity_before,
            quantity_change=transition.quantity_change,
            quantity_after=transition.quantity_after,
            unit_cost=unit_cost,
            created_at=now,
        )
        self.session.add(movement)
        self.session.flush()
        return movement

    def _load_or_create(self, product_id: str, business_date: str, now: str) -> DailyStock:
        row = self._find(product_id, business_date)
        if row is not None:
            return row
        row = DailyStock(
            product_id=product_id,
            date=business_date,
            available_qty=0,
            avg_cost=Decimal("0"),
            created_at=now,
            updated_at=now,
        )
        self.session.add(row)
        self.session.flush()
        logger.debug(
            "snapshot_created",
            extra={"product_id": product_id, "business_date": business_date},
        )
        return row

    def _find(self, product_id: str, business_date: str) -> DailyStock | None:
        stmt = select(DailyStock).where(
            DailyStock.product_id == product_id,
            DailyStock.date == business_date,
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def open_day(self, business_date: str | None = None) -> int:
        """
        Carry each product's latest earlier snapshot forward to ``business_date``.

        Products that already have a row for the date, or have no earlier
        history, are skipped.  Existing rows are never modified.

        Returns:
            Number of snapshots created.
        """
        business_date = business_date or self.clock_service.today()
        validate_business_date(business_date)
        now = self.clock_service.now()

        latest = (
            select(
                DailyStock.product_id.label("product_id"),
                func.max(DailyStock.date).label("max_date"),
            )
            .where(DailyStock.date < business_date)
            .group_by(DailyStock.product_id)
            .subquery()
        )
        already_open = select(DailyStock.product_id).where(DailyStock.date == business_date)
        stmt = (
            select(DailyStock)
            .join(
                latest,
                and_(
                    DailyStock.product_id == latest.c.product_id,
                    DailyStock.date == latest.c.max_date,
                ),
            )
            .where(DailyStock.product_id.not_in(already_open))
            .order_by(DailyStock.product_id)
        )

        created = 0
        with self.session.begin_nested():
            for previous in self.session.execute(stmt).scalars().all():
                self.session.add(
                    DailyStock(
                        product_id=previous.product_id,
                        date=business_date,
                        available_qty=previous.available_qty,
                        avg_cost=previous.avg_cost,
                        created_at=now,
                        updated_at=now,
                    )
                )
                created += 1
            self.session.flush()

        logger.info(
            "day_opened",
            extra={"business_date": business_date, "snapshots_created": created},
        )
        return created

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_snapshot(self, product_id: str, business_date: str) -> StockSnapshot | None:
        """
        Snapshot for exactly ``business_date``, or None.

        No carry-forward: callers wanting the latest state on or before a
        date use StockSelector.snapshot_on_or_before.
        """
        row = self._find(product_id, business_date)
        return snapshot_to_dto(row) if row is not None else None
