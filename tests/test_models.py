"""
Tests for building ledger entries from bookkeeping records.
"""

import pytest
from datetime import date

from recon_engine.models import EntryKind, InvoiceStatus, LedgerEntry, to_cents


@pytest.fixture
def transaction_row():
    return {
        "id": "t1",
        "account_id": "a1",
        "date": "2024-02-20",
        "amount": -50.0,
        "description": "Invoice INV-001 payment",
        "category": "sales",
        "reconciled": False,
        "created_at": "2024-02-20T10:00:00Z",
    }


@pytest.fixture
def invoice_row():
    return {
        "id": "i1",
        "type": "sales",
        "number": "INV-001",
        "date": "2024-02-19",
        "due_date": "2024-03-19",
        "amount": 50.0,
        "status": "paid",
        "counterparty": "ACME Corp",
        "reconciled": False,
        "created_at": "2024-02-19T09:00:00Z",
    }


class TestToCents:

    def test_decimal_conversion_without_float_drift(self):
        assert to_cents(0.1 + 0.2) == 30
        assert to_cents(19.99) == 1999
        assert to_cents("1234.565") == 123457
        assert to_cents(-50) == -5000

    def test_invalid_amount(self):
        with pytest.raises(ValueError):
            to_cents("twelve")
        with pytest.raises(ValueError):
            to_cents(None)


class TestBookkeepingRows:
    """Rows as stored by the bookkeeping app."""

    def test_bank_transaction_row(self, transaction_row):
        entry = LedgerEntry.from_bank_transaction(transaction_row)

        assert entry.kind == EntryKind.BANK_TRANSACTION
        assert entry.amount_cents == -5000
        assert entry.date == date(2024, 2, 20)
        assert entry.account_id == "a1"
        assert entry.status is None
        assert entry.raw_data["category"] == "sales"

    def test_sales_invoice_is_inflow(self, invoice_row):
        entry = LedgerEntry.from_invoice(invoice_row)

        assert entry.kind == EntryKind.SALES_INVOICE
        assert entry.amount_cents == 5000
        assert entry.reference == "INV-001"
        assert entry.counterparty == "ACME Corp"
        assert entry.status == InvoiceStatus.PAID
        assert entry.description == "INV-001"

    def test_purchase_invoice_is_outflow(self, invoice_row):
        invoice_row.update(type="purchase", amount=120.40, description="Office chairs")

        entry = LedgerEntry.from_invoice(invoice_row)

        assert entry.kind == EntryKind.PURCHASE_INVOICE
        assert entry.amount_cents == -12040
        assert entry.description == "INV-001 Office chairs"

    def test_unknown_invoice_type(self, invoice_row):
        invoice_row["type"] = "credit_note"

        with pytest.raises(ValueError):
            LedgerEntry.from_invoice(invoice_row)

    def test_status_survives_serialization(self, invoice_row):
        invoice_row["status"] = "cancelled"
        entry = LedgerEntry.from_invoice(invoice_row)

        restored = LedgerEntry.from_dict(entry.to_dict())

        assert restored.status == InvoiceStatus.CANCELLED
        assert restored == entry


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
