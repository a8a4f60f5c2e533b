"""Storage ports the engine depends on."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List

from ..models import LedgerEntry, Match


class EntrySource(ABC):
    """
    Read-only supplier of ledger entry snapshots.

    Implementations are refreshed by the caller before each reconciliation
    pass; the engine never writes back to them.
    """

    @abstractmethod
    def list_entries(self) -> List[LedgerEntry]:
        """Return the current snapshot of bank transactions and invoices."""


class LedgerStore(ABC):
    """
    Durable, append-mostly record of matches.

    ``append`` persists a new match; ``mark_reversed`` persists a tombstone.
    Records are never deleted.
    """

    @abstractmethod
    def load(self) -> List[Match]:
        """Return every stored match (active and reversed) in creation order."""

    @abstractmethod
    def append(self, match: Match) -> None:
        """Persist a newly confirmed match."""

    @abstractmethod
    def mark_reversed(self, match_id: str, reversed_at: datetime) -> None:
        """Persist the reversal of an existing match."""
