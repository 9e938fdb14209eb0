"""
InvoiceSelector -- invoice detail, listings and overdue receivables.
"""

from sqlalchemy import select

from ledger_kernel.domain.dtos import InvoiceInfo, InvoiceLineInfo, PaymentInfo
from ledger_kernel.domain.values import InvoiceType, PaymentStatus, PriceType
from ledger_kernel.exceptions import InvoiceNotFoundError
from ledger_kernel.models import Invoice, InvoiceItem, InvoicePayment
from ledger_kernel.selectors.base import BaseSelector


def line_to_dto(item: InvoiceItem) -> InvoiceLineInfo:
    return InvoiceLineInfo(
        id=item.id,
        line_no=item.line_no,
        product_id=item.product_id,
        quantity=item.quantity,
        price_type=PriceType(item.price_type),
        unit_price=item.unit_price,
        total_price=item.total_price,
        is_private_price=item.is_private_price,
        private_price_amount=item.private_price_amount,
        private_price_note=item.private_price_note,
    )


def payment_to_dto(payment: InvoicePayment) -> PaymentInfo:
    return PaymentInfo(
        id=payment.id,
        invoice_id=payment.invoice_id,
        payment_amount=payment.payment_amount,
        payment_date=payment.payment_date,
        payment_method=payment.payment_method,
        notes=payment.notes,
    )


def invoice_to_dto(invoice: Invoice, include_lines: bool = True) -> InvoiceInfo:
    """Header plus items in line order and payments newest first."""
    items: tuple[InvoiceLineInfo, ...] = ()
    payments: tuple[PaymentInfo, ...] = ()
    if include_lines:
        items = tuple(line_to_dto(i) for i in sorted(invoice.items, key=lambda i: i.line_no))
        payments = tuple(
            payment_to_dto(p)
            for p in sorted(invoice.payments, key=lambda p: p.payment_date, reverse=True)
        )
    return InvoiceInfo(
        id=invoice.id,
        invoice_type=InvoiceType(invoice.invoice_type),
        customer_id=invoice.customer_id,
        supplier_id=invoice.supplier_id,
        invoice_date=invoice.invoice_date,
        due_date=invoice.due_date,
        total_amount=invoice.total_amount,
        amount_paid=invoice.amount_paid,
        payment_status=PaymentStatus(invoice.payment_status),
        is_paid=invoice.is_paid,
        created_at=invoice.created_at,
        items=items,
        payments=payments,
    )


class InvoiceSelector(BaseSelector):
    """Queries over invoices, invoice_items and invoice_payments."""

    def get_invoice(self, invoice_id: str) -> InvoiceInfo:
        """
        Raises:
            InvoiceNotFoundError: unknown invoice.
        """
        invoice = self.session.get(Invoice, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        return invoice_to_dto(invoice)

    def list_invoices(
        self,
        invoice_type: InvoiceType | str | None = None,
        counterparty_id: str | None = None,
    ) -> list[InvoiceInfo]:
        """Invoice headers, newest business date first."""
        stmt = select(Invoice)
        if invoice_type is not None:
            stmt = stmt.where(Invoice.invoice_type == InvoiceType(invoice_type).value)
        if counterparty_id is not None:
            stmt = stmt.where(
                (Invoice.customer_id == counterparty_id)
                | (Invoice.supplier_id == counterparty_id)
            )
        stmt = stmt.order_by(Invoice.invoice_date.desc(), Invoice.created_at.desc())
        return [
            invoice_to_dto(inv, include_lines=False)
            for inv in self.session.execute(stmt).scalars()
        ]

    def overdue_invoices(self, today: str) -> list[InvoiceInfo]:
        """Unpaid invoices whose due date is before ``today``, oldest due first."""
        stmt = (
            select(Invoice)
            .where(
                Invoice.due_date.is_not(None),
                Invoice.due_date < today,
                Invoice.payment_status != PaymentStatus.PAID.value,
            )
            .order_by(Invoice.due_date, Invoice.created_at)
        )
        return [
            invoice_to_dto(inv, include_lines=False)
            for inv in self.session.execute(stmt).scalars()
        ]
