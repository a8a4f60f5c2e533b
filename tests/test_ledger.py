"""
Tests for the Reconciliation Ledger.
"""

import threading

import pytest
from datetime import date

from recon_engine.exceptions import (
    AlreadyReversedError,
    ConflictError,
    LedgerIntegrityError,
    NotFoundError,
    StorageTimeoutError,
)
from recon_engine.models import EntryKind, Match, MatchOrigin
from recon_engine.reconciliation.ledger import ReconciliationLedger
from recon_engine.storage import InMemoryEntrySource, InMemoryLedgerStore

from factories import assert_single_active_match, bank, invoice


class FailingStore(InMemoryLedgerStore):
    """Store whose disk is gone."""

    def append(self, match):
        raise OSError("disk unavailable")


@pytest.fixture
def entries():
    return [
        bank("b1", -5000, date(2024, 2, 20)),
        bank("b2", 12000, date(2024, 3, 1)),
        invoice("i1", 5000, date(2024, 2, 19)),
        invoice("i2", -3000, date(2024, 2, 25), kind=EntryKind.PURCHASE_INVOICE),
    ]


@pytest.fixture
def ledger(entries):
    return ReconciliationLedger(
        InMemoryLedgerStore(),
        InMemoryEntrySource(entries),
        lock_timeout=1.0,
    )


class TestReconciliationLedger:
    """Test suite for confirm / reverse and derived views."""

    def test_confirm_marks_entries_reconciled(self, ledger):
        match_id = ledger.confirm(Match(entry_ids=("b1", "i1"), confidence=0.95))

        assert ledger.is_reconciled("b1")
        assert ledger.is_reconciled("i1")
        assert ledger.active_match("b1").id == match_id
        assert {e.id for e in ledger.unreconciled_entries()} == {"b2", "i2"}

    def test_confirm_conflict_commits_nothing(self, ledger):
        ledger.confirm(Match(entry_ids=("b1", "i1")))

        with pytest.raises(ConflictError) as exc:
            ledger.confirm(Match(entry_ids=("b2", "i1", "i2")))

        assert exc.value.entry_ids == ["i1"]
        assert not ledger.is_reconciled("b2")
        assert not ledger.is_reconciled("i2")
        assert len(ledger.matches()) == 1
        assert_single_active_match(ledger.matches())

    def test_reverse_frees_entries_immediately(self, ledger):
        match_id = ledger.confirm(Match(entry_ids=("b1", "i1")))

        tombstone = ledger.reverse(match_id)

        assert tombstone.reversed_at is not None
        assert not tombstone.is_active
        assert ledger.active_match("b1") is None
        assert {"b1", "i1"} <= {e.id for e in ledger.unreconciled_entries()}
        # Audit trail preserved
        assert ledger.get(match_id).reversed_at == tombstone.reversed_at

    def test_reverse_errors(self, ledger):
        match_id = ledger.confirm(Match(entry_ids=("b1", "i1")))
        ledger.reverse(match_id)

        with pytest.raises(AlreadyReversedError):
            ledger.reverse(match_id)
        with pytest.raises(NotFoundError):
            ledger.reverse("no-such-match")
        with pytest.raises(NotFoundError):
            ledger.get("no-such-match")

    def test_rematch_after_reversal(self, ledger):
        first = ledger.confirm(Match(entry_ids=("b1", "i1")))
        ledger.reverse(first)

        second = ledger.confirm(Match(entry_ids=("b1", "i1"), origin=MatchOrigin.MANUAL))

        assert second != first
        assert ledger.active_match("i1").id == second
        assert len(ledger.matches()) == 2
        assert len(ledger.matches(include_reversed=False)) == 1

    def test_unreconciled_by_kind_and_date(self, ledger):
        banks = ledger.unreconciled_entries(kind=EntryKind.BANK_TRANSACTION)
        early = ledger.unreconciled_entries(as_of=date(2024, 2, 20))

        assert [e.id for e in banks] == ["b1", "b2"]
        assert [e.id for e in early] == ["b1", "i1"]

    def test_snapshot_ignores_stale_source_flag(self):
        source = InMemoryEntrySource([
            bank("b1", -5000, reconciled=True),
            invoice("i1", 5000),
        ])
        ledger = ReconciliationLedger(InMemoryLedgerStore(), source)

        assert all(not e.reconciled for e in ledger.snapshot())

    def test_storage_failure_commits_nothing(self, entries):
        ledger = ReconciliationLedger(FailingStore(), InMemoryEntrySource(entries))

        with pytest.raises(StorageTimeoutError):
            ledger.confirm(Match(entry_ids=("b1", "i1")))

        assert not ledger.is_reconciled("b1")
        assert ledger.matches() == []

    def test_lock_timeout(self, ledger):
        held = threading.Event()
        release = threading.Event()

        def hold():
            with ledger.exclusive():
                held.set()
                release.wait(5)

        worker = threading.Thread(target=hold)
        worker.start()
        assert held.wait(5)
        try:
            with pytest.raises(StorageTimeoutError):
                ledger.confirm(Match(entry_ids=("b1", "i1")), timeout=0.05)
        finally:
            release.set()
            worker.join()

        assert ledger.matches() == []

    def test_overlapping_active_matches_rejected_on_load(self, entries):
        store = InMemoryLedgerStore()
        store.append(Match(entry_ids=("b1", "i1")))
        store.append(Match(entry_ids=("b2", "i1")))

        with pytest.raises(LedgerIntegrityError):
            ReconciliationLedger(store, InMemoryEntrySource(entries))

    def test_reversed_history_loads_cleanly(self, entries):
        store = InMemoryLedgerStore()
        old = Match(entry_ids=("b1", "i1"))
        store.append(old)
        store.mark_reversed(old.id, old.created_at)
        store.append(Match(entry_ids=("b1", "i1")))

        ledger = ReconciliationLedger(store, InMemoryEntrySource(entries))

        assert ledger.active_match("b1").id != old.id
        assert_single_active_match(ledger.matches())


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
