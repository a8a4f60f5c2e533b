"""
Tests for the Candidate Generator.
"""

import pytest
from datetime import date

from recon_engine.models import EntryKind, InvoiceStatus
from recon_engine.reconciliation.candidates import CandidateGenerator

from factories import bank, invoice


@pytest.fixture
def generator():
    return CandidateGenerator()


def target_ids(candidates):
    return sorted(c.target_id for c in candidates)


class TestCandidateGenerator:
    """Test suite for candidate enumeration."""

    def test_generation_is_lazy_and_single_pass(self, generator, default_window):
        payment = bank("b1", -5000)
        pool = [invoice("i1", 5000), invoice("i2", 5000)]

        candidates = generator.generate(payment, pool, default_window)

        assert iter(candidates) is candidates
        assert len(list(candidates)) == 2
        assert list(candidates) == []
        # Re-derivable by calling again
        assert len(list(generator.generate(payment, pool, default_window))) == 2

    def test_candidates_are_unscored_and_carry_deltas(self, generator, default_window):
        payment = bank("b1", -5000, date(2024, 2, 18))
        pool = [invoice("i1", 5020, date(2024, 2, 20))]

        [candidate] = generator.generate(payment, pool, default_window)

        assert candidate.source_id == "b1"
        assert candidate.target_id == "i1"
        assert candidate.score == 0.0
        assert candidate.date_delta_days == 2
        assert candidate.amount_delta_cents == 20

    def test_zero_amount_entry_generates_nothing(self, generator, default_window):
        zero = bank("b0", 0)
        pool = [invoice("i1", 0), invoice("i2", 5000)]

        assert list(generator.generate(zero, pool, default_window)) == []

    def test_zero_amount_targets_excluded(self, generator, default_window):
        payment = bank("b1", 1)
        pool = [invoice("i0", 0), invoice("i1", 1)]

        assert target_ids(generator.generate(payment, pool, default_window)) == ["i1"]

    def test_reconciled_and_self_excluded(self, generator, default_window):
        payment = bank("b1", -5000)
        pool = [
            payment,
            invoice("i1", 5000, reconciled=True),
            invoice("i2", 5000),
        ]

        assert target_ids(generator.generate(payment, pool, default_window)) == ["i2"]

    def test_date_window(self, generator, default_window):
        payment = bank("b1", -5000, date(2024, 2, 20))
        pool = [
            invoice("i-edge", 5000, date(2024, 2, 25)),
            invoice("i-late", 5000, date(2024, 2, 26)),
            invoice("i-early", 5000, date(2024, 2, 15)),
        ]

        assert target_ids(generator.generate(payment, pool, default_window)) == [
            "i-early", "i-edge",
        ]

    def test_amount_tolerance_same_and_opposite_sign(self, generator, default_window):
        payment = bank("b1", -5000)
        pool = [
            invoice("i-opposite", 5040),    # |5040 - 5000| / 5040 < 1%
            invoice("i-same", -5030),       # same sign, within 1%
            invoice("i-too-far", 5100),     # ~2%
        ]

        assert target_ids(generator.generate(payment, pool, default_window)) == [
            "i-opposite", "i-same",
        ]

    def test_invoices_never_pair_with_invoices(self, generator, default_window):
        sales = invoice("i1", 5000)
        pool = [
            invoice("i2", -5000, kind=EntryKind.PURCHASE_INVOICE),
            bank("b1", 5000),
        ]

        assert target_ids(generator.generate(sales, pool, default_window)) == ["b1"]

    def test_transfer_pairs_need_other_account_and_opposite_sign(self, generator, default_window):
        outflow = bank("b1", -20000, account_id="checking")
        pool = [
            bank("b-savings", 20000, account_id="savings"),
            bank("b-same-account", 20000, account_id="checking"),
            bank("b-same-sign", -20000, account_id="card"),
        ]

        assert target_ids(generator.generate(outflow, pool, default_window)) == ["b-savings"]

    def test_currency_mismatch_excluded(self, generator, default_window):
        payment = bank("b1", -5000, currency="EUR")
        pool = [invoice("i-usd", 5000, currency="USD"), invoice("i-eur", 5000)]

        assert target_ids(generator.generate(payment, pool, default_window)) == ["i-eur"]

    def test_cancelled_and_draft_invoices_excluded(self, generator, default_window):
        payment = bank("b1", -5000)
        pool = [
            invoice("i-paid", 5000, status=InvoiceStatus.PAID),
            invoice("i-pending", 5000, status=InvoiceStatus.PENDING),
            invoice("i-draft", 5000, status=InvoiceStatus.DRAFT),
            invoice("i-cancelled", 5000, status=InvoiceStatus.CANCELLED),
            invoice("i-unknown", 5000),
        ]

        assert target_ids(generator.generate(payment, pool, default_window)) == [
            "i-paid", "i-pending", "i-unknown",
        ]

    def test_excluded_invoice_generates_nothing(self, generator, default_window):
        cancelled = invoice("i1", 5000, status=InvoiceStatus.CANCELLED)

        assert list(generator.generate(cancelled, [bank("b1", -5000)], default_window)) == []

    def test_draft_invoices_can_be_allowed(self, default_window):
        generator = CandidateGenerator(excluded_statuses=[InvoiceStatus.CANCELLED])
        pool = [
            invoice("i-draft", 5000, status=InvoiceStatus.DRAFT),
            invoice("i-cancelled", 5000, status=InvoiceStatus.CANCELLED),
        ]

        assert target_ids(generator.generate(bank("b1", -5000), pool, default_window)) == ["i-draft"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
