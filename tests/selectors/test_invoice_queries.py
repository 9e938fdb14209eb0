"""Tests for InvoiceSelector."""

from decimal import Decimal

import pytest

from ledger_kernel.domain.dtos import InvoiceItemInput
from ledger_kernel.domain.values import InvoiceType
from ledger_kernel.exceptions import InvoiceNotFoundError

DAY = "2024-01-01"


@pytest.fixture
def invoices(processor, stocked_product, customer, supplier):
    sale = processor.create_invoice(
        "sell",
        customer.id,
        DAY,
        [InvoiceItemInput(stocked_product.id, 2)],
        due_date="2024-01-10",
    ).invoice
    purchase = processor.create_invoice(
        "buy",
        supplier.id,
        "2024-01-02",
        [InvoiceItemInput(stocked_product.id, 5)],
        amount_paid="50",
        due_date="2024-01-05",
    ).invoice
    return sale, purchase


class TestInvoiceSelector:

    def test_get_invoice_with_lines(self, invoice_selector, invoices):
        sale, _ = invoices
        info = invoice_selector.get_invoice(sale.id)
        assert info.counterparty_id == sale.customer_id
        assert info.remaining_balance == Decimal("20.00")
        assert len(info.items) == 1

    def test_unknown(self, invoice_selector):
        with pytest.raises(InvoiceNotFoundError):
            invoice_selector.get_invoice("missing")

    def test_list_newest_first(self, invoice_selector, invoices):
        sale, purchase = invoices
        assert [i.id for i in invoice_selector.list_invoices()] == [purchase.id, sale.id]

    def test_list_filters(self, invoice_selector, invoices, customer):
        sale, purchase = invoices
        assert [i.id for i in invoice_selector.list_invoices(InvoiceType.BUY)] == [purchase.id]
        assert [i.id for i in invoice_selector.list_invoices("sell")] == [sale.id]
        assert [i.id for i in invoice_selector.list_invoices(counterparty_id=customer.id)] == [sale.id]

    def test_overdue_excludes_paid(self, invoice_selector, invoices):
        sale, _ = invoices
        # The purchase is due earlier but fully paid
        assert [i.id for i in invoice_selector.overdue_invoices("2024-01-11")] == [sale.id]
        assert invoice_selector.overdue_invoices("2024-01-10") == []
