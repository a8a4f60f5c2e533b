"""Enumerations for the reconciliation engine."""

from enum import Enum


class EntryKind(str, Enum):
    """Kind of ledger entry offered for matching."""
    BANK_TRANSACTION = "bank_transaction"
    SALES_INVOICE = "sales_invoice"
    PURCHASE_INVOICE = "purchase_invoice"

    @property
    def is_bank(self) -> bool:
        return self is EntryKind.BANK_TRANSACTION

    @property
    def is_invoice(self) -> bool:
        return self in (EntryKind.SALES_INVOICE, EntryKind.PURCHASE_INVOICE)


class MatchOrigin(str, Enum):
    """Who created a match."""
    AUTOMATIC = "automatic"  # Confirmed by the matcher above threshold
    MANUAL = "manual"        # Confirmed directly by a user


class EntryState(str, Enum):
    """
    Lifecycle of an entry with respect to reconciliation.

    UNMATCHED: No active match and no surviving suggestion
    SUGGESTED: Has a below-threshold candidate waiting for manual review
    MATCHED: Bound to an active match
    REVERSED is not an entry state: reversing a match returns its
    entries to UNMATCHED.
    """
    UNMATCHED = "unmatched"
    SUGGESTED = "suggested"
    MATCHED = "matched"


class AuditAction(str, Enum):
    """Type of audit action."""
    PASS_STARTED = "pass_started"
    PASS_COMPLETED = "pass_completed"
    PASS_CANCELLED = "pass_cancelled"
    PASS_ABORTED = "pass_aborted"
    MATCH_CONFIRMED = "match_confirmed"
    MATCH_REVERSED = "match_reversed"
    MATCH_CONFLICT = "match_conflict"
    SUGGESTION_RAISED = "suggestion_raised"


class InvoiceStatus(str, Enum):
    """Lifecycle of an invoice in the bookkeeping records."""
    DRAFT = "draft"
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"
