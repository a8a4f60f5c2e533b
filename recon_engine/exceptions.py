"""Error taxonomy for the reconciliation engine.

Candidate generation and scoring never raise; every error below originates at
the confirm / reverse boundary of the ledger or from invalid configuration.
"""

from typing import Any, Iterable, List, Optional


class ReconciliationError(Exception):
    """Base class for reconciliation errors."""
    status_code: int = 400

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ConflictError(ReconciliationError):
    """One or more entries are already reconciled by an active match."""
    status_code = 409

    def __init__(self, entry_ids: Iterable[str], message: Optional[str] = None):
        self.entry_ids: List[str] = sorted(entry_ids)
        super().__init__(
            message or f"Entries already reconciled: {', '.join(self.entry_ids)}",
            details={"entry_ids": self.entry_ids},
        )


class NotFoundError(ReconciliationError):
    """Unknown match or entry id."""
    status_code = 404


class AlreadyReversedError(ReconciliationError):
    """The match has already been reversed and is inactive."""
    status_code = 409

    def __init__(self, match_id: str):
        self.match_id = match_id
        super().__init__(
            f"Match already reversed: {match_id}",
            details={"match_id": match_id},
        )


class InvalidWindowError(ReconciliationError):
    """Non-positive tolerance or out-of-range threshold configuration."""
    status_code = 422


class StorageTimeoutError(ReconciliationError):
    """The ledger could not be reached within the caller's deadline."""
    status_code = 503


class LedgerIntegrityError(ReconciliationError):
    """More than one active match references the same entry."""
    status_code = 500
