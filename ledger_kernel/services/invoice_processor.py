"""
InvoiceProcessor -- invoice validation, totals, payment status and stock effect.

Responsibility:
    Turns a proposed invoice into persisted Invoice and InvoiceItem rows and
    drives one InventoryLedger movement per item.  Records payments against
    existing invoices.

Architecture position:
    Kernel > Services -- imperative shell.  Uses domain/pricing.py for
    prices, totals and status, PriceSelector for catalog prices, and
    InventoryLedger for stock.

Invariants enforced:
    - All-or-nothing: the invoice, its items and all their movements are
      written inside one SAVEPOINT.  Any failure (an unresolvable price,
      insufficient stock on line 3) rolls the whole unit back and re-raises.
    - total_amount is the Decimal sum of item total_price values.
    - payment_status follows derive_payment_status (paid-first thresholds).
    - sell -> customer + stock decrease.  buy -> supplier + stock increase
      at the item's effective unit price.

Failure modes:
    - InvalidInvoiceTypeError, EmptyInvoiceError, InvalidQuantityError,
      InvalidPriceConfigurationError, InvalidPaymentAmountError.
    - CustomerNotFoundError / SupplierNotFoundError / ProductNotFoundError.
    - InsufficientStockError propagated from InventoryLedger.
    - InvoiceNotFoundError / PaymentExceedsBalanceError from record_payment.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from sqlalchemy.orm import Session

from ledger_kernel.db.types import round_money, to_decimal
from ledger_kernel.domain.clock import ClockService, validate_business_date
from ledger_kernel.domain.dtos import (
    InvoiceItemInput,
    InvoiceResult,
    PaymentResult,
)
from ledger_kernel.domain.policy import LedgerPolicy
from ledger_kernel.domain.pricing import (
    derive_payment_status,
    invoice_total,
    line_total,
    normalize_price_type,
    parse_amount_paid,
    resolve_price,
    validate_quantity,
)
from ledger_kernel.domain.values import InvoiceType, PaymentStatus
from ledger_kernel.exceptions import (
    CustomerNotFoundError,
    EmptyInvoiceError,
    InvalidInvoiceTypeError,
    InvalidPaymentAmountError,
    InvoiceNotFoundError,
    LedgerKernelError,
    PaymentExceedsBalanceError,
    ProductNotFoundError,
    SupplierNotFoundError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models import (
    Customer,
    Invoice,
    InvoiceItem,
    InvoicePayment,
    Product,
    Supplier,
)
from ledger_kernel.selectors.invoice_selector import invoice_to_dto, payment_to_dto
from ledger_kernel.selectors.price_selector import PriceSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.inventory_ledger import InventoryLedger

logger = get_logger("services.invoice_processor")


@dataclass(frozen=True)
class _PricedLine:
    line_no: int
    item: InvoiceItemInput
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    is_private: bool


class InvoiceProcessor(BaseService[Invoice]):
    """
    Creates invoices and records payments.

    Contract:
        Flushes within the caller's transaction.  Never commits.
    """

    def __init__(
        self,
        session: Session,
        clock_service: ClockService | None = None,
        policy: LedgerPolicy | None = None,
        ledger: InventoryLedger | None = None,
    ):
        super().__init__(session, clock_service)
        self.policy = policy or LedgerPolicy()
        self.ledger = ledger or InventoryLedger(session, self.clock_service, self.policy)
        self._prices = PriceSelector(session)

    # ------------------------------------------------------------------
    # create_invoice
    # ------------------------------------------------------------------

    def create_invoice(
        self,
        invoice_type: InvoiceType | str,
        counterparty_id: str,
        business_date: str,
        items: Sequence[InvoiceItemInput],
        amount_paid: Decimal | str | int = Decimal("0"),
        due_date: str | None = None,
    ) -> InvoiceResult:
        """
        Validate, total and persist an invoice, then apply its stock effect.

        Args:
            invoice_type: ``buy`` or ``sell``.
            counterparty_id: Supplier id for buy, customer id for sell.
            business_date: ``YYYY-MM-DD``.  Keys the stock snapshots.
            items: Proposed lines, applied in order.
            amount_paid: Non-negative amount paid at creation.
            due_date: Optional ``YYYY-MM-DD`` payment due date.

        Returns:
            The persisted invoice and the movements it produced.
        """
        kind = self._parse_type(invoice_type)
        validate_business_date(business_date)
        if due_date is not None:
            validate_business_date(due_date)
        if not items:
            raise EmptyInvoiceError()

        paid = parse_amount_paid(amount_paid, self.policy.money_decimal_places)
        self._require_counterparty(kind, counterparty_id)
        priced = self._price_lines(items, business_date)

        total = invoice_total(
            (line.total_price for line in priced),
            self.policy.money_decimal_places,
        )
        status = derive_payment_status(total, paid)
        now = self.clock_service.now()

        invoice = Invoice(
            invoice_type=kind.value,
            customer_id=counterparty_id if kind == InvoiceType.SELL else None,
            supplier_id=counterparty_id if kind == InvoiceType.BUY else None,
            invoice_date=business_date,
            due_date=due_date,
            total_amount=total,
            amount_paid=paid,
            payment_status=status.value,
            is_paid=status == PaymentStatus.PAID,
            created_at=now,
        )

        movements = []
        try:
            with self.session.begin_nested():
                self.session.add(invoice)
                self.session.flush()
                with LogContext.bind(invoice_id=invoice.id):
                    for line in priced:
                        self.session.add(
                            InvoiceItem(
                                invoice_id=invoice.id,
                                product_id=line.item.product_id,
                                line_no=line.line_no,
                                quantity=line.quantity,
                                price_type=normalize_price_type(line.item.price_type).value,
                                unit_price=line.unit_price,
                                total_price=line.total_price,
                                is_private_price=line.is_private,
                                private_price_amount=(
                                    line.unit_price if line.is_private else None
                                ),
                                private_price_note=(
                                    line.item.private_price_note if line.is_private else None
                                ),
                            )
                        )
                    self.session.flush()

                    for line in priced:
                        if kind == InvoiceType.SELL:
                            movement = self.ledger.apply_movement(
                                line.item.product_id,
                                invoice.id,
                                business_date,
                                -line.quantity,
                            )
                        else:
                            movement = self.ledger.apply_movement(
                                line.item.product_id,
                                invoice.id,
                                business_date,
                                line.quantity,
                                unit_cost=line.unit_price,
                            )
                        movements.append(movement)
        except LedgerKernelError as exc:
            # Already reported by the component that raised it.
            fields = self._rollback_fields(kind, counterparty_id, business_date, priced)
            logger.info("invoice_rolled_back", extra={**fields, "error_code": exc.code})
            raise
        except Exception:
            logger.warning(
                "invoice_rolled_back",
                extra=self._rollback_fields(kind, counterparty_id, business_date, priced),
                exc_info=True,
            )
            raise

        self.session.refresh(invoice)
        logger.info(
            "invoice_created",
            extra={
                "invoice_id": invoice.id,
                "invoice_type": kind.value,
                "business_date": business_date,
                "total_amount": total,
                "amount_paid": paid,
                "payment_status": status.value,
                "line_count": len(priced),
            },
        )
        return InvoiceResult(invoice=invoice_to_dto(invoice), movements=tuple(movements))

    @staticmethod
    def _rollback_fields(
        kind: InvoiceType,
        counterparty_id: str,
        business_date: str,
        priced: list[_PricedLine],
    ) -> dict:
        return {
            "invoice_type": kind.value,
            "counterparty_id": counterparty_id,
            "business_date": business_date,
            "line_count": len(priced),
        }

    def _parse_type(self, invoice_type) -> InvoiceType:
        try:
            if isinstance(invoice_type, InvoiceType):
                return invoice_type
            return InvoiceType(str(invoice_type).strip().lower())
        except ValueError:
            raise InvalidInvoiceTypeError(invoice_type) from None

    def _require_counterparty(self, kind: InvoiceType, counterparty_id: str) -> None:
        if kind == InvoiceType.SELL:
            if not counterparty_id or self.session.get(Customer, counterparty_id) is None:
                raise CustomerNotFoundError(str(counterparty_id))
        elif not counterparty_id or self.session.get(Supplier, counterparty_id) is None:
            raise SupplierNotFoundError(str(counterparty_id))

    def _price_lines(
        self,
        items: Sequence[InvoiceItemInput],
        business_date: str,
    ) -> list[_PricedLine]:
        priced = []
        for line_no, item in enumerate(items, start=1):
            quantity = validate_quantity(item.quantity, line_no)
            if self.session.get(Product, item.product_id) is None:
                raise ProductNotFoundError(item.product_id)
            catalog_price = self._prices.price_on(item.product_id, business_date)
            resolved = resolve_price(item, catalog_price, line_no)
            priced.append(
                _PricedLine(
                    line_no=line_no,
                    item=item,
                    quantity=quantity,
                    unit_price=resolved.unit_price,
                    total_price=line_total(
                        quantity, resolved.unit_price, self.policy.money_decimal_places
                    ),
                    is_private=resolved.is_private,
                )
            )
        return priced

    # ------------------------------------------------------------------
    # record_payment
    # ------------------------------------------------------------------

    def record_payment(
        self,
        invoice_id: str,
        payment_amount: Decimal | str | int,
        payment_method: str | None = None,
        notes: str | None = None,
    ) -> PaymentResult:
        """
        Append a payment and recompute the invoice's payment fields.

        Raises:
            InvoiceNotFoundError: unknown invoice.
            InvalidPaymentAmountError: amount is not a positive number.
            PaymentExceedsBalanceError: amount exceeds the remaining balance.
        """
        invoice = self.session.get(Invoice, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)

        try:
            amount = round_money(to_decimal(payment_amount), self.policy.money_decimal_places)
        except ValueError as exc:
            raise InvalidPaymentAmountError(payment_amount, str(exc)) from exc
        if amount <= 0:
            raise InvalidPaymentAmountError(payment_amount, "payment must be greater than zero")

        remaining = invoice.total_amount - invoice.amount_paid
        if amount > remaining:
            raise PaymentExceedsBalanceError(invoice_id, amount, remaining)

        now = self.clock_service.now()
        with self.session.begin_nested():
            payment = InvoicePayment(
                invoice=invoice,
                payment_amount=amount,
                payment_date=now,
                payment_method=payment_method,
                notes=notes,
            )
            self.session.add(payment)

            new_paid = invoice.amount_paid + amount
            status = derive_payment_status(invoice.total_amount, new_paid)
            invoice.amount_paid = new_paid
            invoice.payment_status = status.value
            invoice.is_paid = status == PaymentStatus.PAID
            self.session.flush()

        logger.info(
            "payment_recorded",
            extra={
                "invoice_id": invoice_id,
                "payment_amount": amount,
                "amount_paid": new_paid,
                "payment_status": status.value,
            },
        )
        return PaymentResult(
            payment=payment_to_dto(payment),
            amount_paid=new_paid,
            remaining_balance=invoice.total_amount - new_paid,
            payment_status=status,
        )

