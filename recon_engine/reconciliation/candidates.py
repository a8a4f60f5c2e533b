"""
Candidate Generator.

Enumerates plausible counterparts of one ledger entry inside a date/amount
window. Pure: no entry is mutated and nothing is scored here.
"""

from typing import FrozenSet, Iterable, Iterator, Optional

import structlog

from ..models import Candidate, InvoiceStatus, LedgerEntry, MatchWindow

logger = structlog.get_logger()

# Invoices that do not represent money expected to move
DEFAULT_EXCLUDED_STATUSES: FrozenSet[InvoiceStatus] = frozenset({
    InvoiceStatus.DRAFT,
    InvoiceStatus.CANCELLED,
})


def days_between(left: LedgerEntry, right: LedgerEntry) -> int:
    """Absolute distance in calendar days."""
    return abs((left.date - right.date).days)


def is_transfer_pair(left: LedgerEntry, right: LedgerEntry) -> bool:
    """Both sides are bank transactions (an inter-account transfer)."""
    return left.kind.is_bank and right.kind.is_bank


def amount_difference(left: LedgerEntry, right: LedgerEntry) -> int:
    """
    Distance between two amounts in cents.

    Invoice/payment pairs may carry the same or opposite signs depending on
    how each side books the movement, so the closer of the two readings
    wins. A transfer always leaves one account and enters another, so
    bank-to-bank pairs only compare as opposites.
    """
    opposite = abs(left.amount_cents + right.amount_cents)
    if is_transfer_pair(left, right):
        return opposite
    return min(abs(left.amount_cents - right.amount_cents), opposite)


def kinds_compatible(entry: LedgerEntry, other: LedgerEntry) -> bool:
    """Bank to invoice, or bank to bank across accounts with opposite signs."""
    if entry.currency != other.currency:
        return False

    if is_transfer_pair(entry, other):
        if entry.account_id and entry.account_id == other.account_id:
            return False
        return (entry.amount_cents > 0) != (other.amount_cents > 0)

    # Exactly one side must be a bank transaction
    return entry.kind.is_bank != other.kind.is_bank


class CandidateGenerator:
    """Produces unscored candidates for a single entry."""

    def __init__(self, excluded_statuses: Optional[Iterable[InvoiceStatus]] = None):
        self.excluded_statuses = (
            DEFAULT_EXCLUDED_STATUSES
            if excluded_statuses is None
            else frozenset(excluded_statuses)
        )

    def is_eligible(self, entry: LedgerEntry) -> bool:
        """Non-zero and not an invoice in an excluded status."""
        if entry.is_zero:
            return False
        return entry.status is None or entry.status not in self.excluded_statuses

    def generate(
        self,
        entry: LedgerEntry,
        pool: Iterable[LedgerEntry],
        window: MatchWindow,
    ) -> Iterator[Candidate]:
        """
        Lazily yield candidates pairing ``entry`` with members of ``pool``.

        Args:
            entry: Entry looking for a counterpart
            pool: Entries to search (reconciled ones are skipped)
            window: Date and amount tolerances

        Yields:
            Candidate with ``source_id == entry.id`` and a zero score
        """
        if not self.is_eligible(entry):
            return

        for other in pool:
            if not self._accepts(entry, other, window):
                continue
            yield Candidate(
                source_id=entry.id,
                target_id=other.id,
                date_delta_days=days_between(entry, other),
                amount_delta_cents=amount_difference(entry, other),
            )

    def _accepts(
        self,
        entry: LedgerEntry,
        other: LedgerEntry,
        window: MatchWindow,
    ) -> bool:
        if other.id == entry.id or other.reconciled or not self.is_eligible(other):
            return False

        if not kinds_compatible(entry, other):
            return False

        if days_between(entry, other) > window.max_date_delta_days:
            return False

        denominator = max(abs(other.amount_cents), 1)
        same_sign_ratio = abs(other.amount_cents - entry.amount_cents) / denominator
        opposite_sign_ratio = abs(other.amount_cents + entry.amount_cents) / denominator

        if is_transfer_pair(entry, other):
            return opposite_sign_ratio <= window.max_amount_delta_ratio

        return min(same_sign_ratio, opposite_sign_ratio) <= window.max_amount_delta_ratio
