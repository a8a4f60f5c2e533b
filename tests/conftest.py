"""Shared fixtures for the reconciliation tests."""

from datetime import date

import pytest

from recon_engine.config import Settings
from recon_engine.models import MatchWindow
from recon_engine.reconciliation import ReconciliationService
from recon_engine.storage import InMemoryEntrySource, InMemoryLedgerStore

from factories import bank, invoice


@pytest.fixture
def default_window():
    return MatchWindow(max_date_delta_days=5, max_amount_delta_ratio=0.01)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        ledger_backend="memory",
        data_dir=tmp_path / "data",
        ledger_path=tmp_path / "data" / "ledger.jsonl",
        entries_path=tmp_path / "data" / "entries.json",
        reports_dir=tmp_path / "reports",
        max_date_delta_days=5,
        max_amount_delta_ratio=0.01,
        auto_confirm_threshold=0.85,
        storage_timeout_seconds=2.0,
    )


@pytest.fixture
def source():
    return InMemoryEntrySource()


@pytest.fixture
def make_service(settings, source):
    """Build a service over an in-memory ledger seeded with ``entries``."""
    def _make(entries, matches=()):
        source.replace(entries)
        store = InMemoryLedgerStore()
        for match in matches:
            store.append(match)
        return ReconciliationService(source, store, settings)
    return _make


@pytest.fixture
def invoice_payment_entries():
    """The dashboard's sample data: a payment, the invoice it settles, a card charge."""
    return [
        bank("bank-1", -5000, description="Invoice #INV-001 payment"),
        invoice("inv-1", 5000, description="Invoice #INV-001"),
        bank("bank-2", -25000, day=date(2024, 2, 19), description="Office Supplies"),
    ]
