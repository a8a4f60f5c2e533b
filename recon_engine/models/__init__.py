"""Data models for the ledger reconciliation engine."""

from .enums import (
    EntryKind,
    MatchOrigin,
    EntryState,
    AuditAction,
    InvoiceStatus,
)
from .entry import LedgerEntry, to_cents
from .reconciliation import (
    MatchWindow,
    Candidate,
    Match,
    AuditEntry,
    ReconciliationSummary,
    utc_now,
    validate_threshold,
)

__all__ = [
    # Enums
    "EntryKind",
    "MatchOrigin",
    "EntryState",
    "AuditAction",
    "InvoiceStatus",
    # Entries
    "LedgerEntry",
    "to_cents",
    # Reconciliation
    "MatchWindow",
    "Candidate",
    "Match",
    "AuditEntry",
    "ReconciliationSummary",
    "utc_now",
    "validate_threshold",
]
