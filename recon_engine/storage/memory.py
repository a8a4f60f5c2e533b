"""In-memory implementations of the storage ports."""

from datetime import datetime
from typing import Dict, Iterable, List, Optional

from ..models import LedgerEntry, Match
from .base import EntrySource, LedgerStore


class InMemoryEntrySource(EntrySource):
    """Entry source backed by a plain list, replaceable between passes."""

    def __init__(self, entries: Optional[Iterable[LedgerEntry]] = None):
        self._entries: List[LedgerEntry] = list(entries or [])

    def list_entries(self) -> List[LedgerEntry]:
        return list(self._entries)

    def replace(self, entries: Iterable[LedgerEntry]) -> None:
        """Swap in a refreshed snapshot."""
        self._entries = list(entries)


class InMemoryLedgerStore(LedgerStore):
    """Non-durable ledger store, used for tests and the ``memory`` backend."""

    def __init__(self):
        self._matches: Dict[str, Match] = {}

    def load(self) -> List[Match]:
        return list(self._matches.values())

    def append(self, match: Match) -> None:
        if match.id in self._matches:
            raise ValueError(f"Match already stored: {match.id}")
        self._matches[match.id] = match

    def mark_reversed(self, match_id: str, reversed_at: datetime) -> None:
        self._matches[match_id] = self._matches[match_id].reversed(reversed_at)
