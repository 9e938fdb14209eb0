"""Tests for InvoiceProcessor.record_payment."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from ledger_kernel.domain.dtos import InvoiceItemInput
from ledger_kernel.domain.values import PaymentStatus
from ledger_kernel.exceptions import (
    InvalidPaymentAmountError,
    InvoiceNotFoundError,
    PaymentExceedsBalanceError,
)
from ledger_kernel.models import InvoicePayment

DAY = "2024-01-01"


@pytest.fixture
def invoice(processor, stocked_product, customer):
    """A 100.00 sale with nothing paid."""
    return processor.create_invoice(
        "sell", customer.id, DAY, [InvoiceItemInput(stocked_product.id, 10)]
    ).invoice


class TestRecordPayment:

    def test_partial_then_paid(self, processor, invoice_selector, invoice):
        first = processor.record_payment(invoice.id, "40.00", payment_method="cash")
        assert first.amount_paid == Decimal("40.00")
        assert first.remaining_balance == Decimal("60.00")
        assert first.payment_status is PaymentStatus.PARTIAL

        second = processor.record_payment(invoice.id, "60")
        assert second.payment_status is PaymentStatus.PAID
        assert second.remaining_balance == Decimal("0.00")

        stored = invoice_selector.get_invoice(invoice.id)
        assert stored.is_paid is True
        assert stored.amount_paid == Decimal("100.00")
        assert len(stored.payments) == 2

    def test_payment_row_fields(self, processor, invoice):
        result = processor.record_payment(invoice.id, "12.50", payment_method="card", notes="tip")
        assert result.payment.invoice_id == invoice.id
        assert result.payment.payment_amount == Decimal("12.50")
        assert result.payment.payment_method == "card"
        assert result.payment.notes == "tip"
        assert result.payment.payment_date == "2024-01-01T14:00:00.000"

    @pytest.mark.parametrize("amount", ["0", "-5", "abc", 2.5])
    def test_invalid_amount(self, session, processor, invoice, amount):
        with pytest.raises(InvalidPaymentAmountError):
            processor.record_payment(invoice.id, amount)
        assert session.execute(select(func.count()).select_from(InvoicePayment)).scalar_one() == 0

    def test_overpayment_rejected(self, processor, invoice):
        processor.record_payment(invoice.id, "90")
        with pytest.raises(PaymentExceedsBalanceError) as exc_info:
            processor.record_payment(invoice.id, "10.01")
        assert exc_info.value.remaining_balance == Decimal("10.00")

    def test_paid_invoice_accepts_no_more(self, processor, stocked_product, customer):
        paid = processor.create_invoice(
            "sell", customer.id, DAY, [InvoiceItemInput(stocked_product.id, 1)], amount_paid="10"
        ).invoice
        with pytest.raises(PaymentExceedsBalanceError):
            processor.record_payment(paid.id, "0.01")

    def test_unknown_invoice(self, processor):
        with pytest.raises(InvoiceNotFoundError):
            processor.record_payment("missing", "1")

    def test_logged(self, processor, invoice, captured_logs):
        processor.record_payment(invoice.id, "1")
        record = next(r for r in captured_logs() if r["message"] == "payment_recorded")
        assert record["payment_status"] == "partial"
