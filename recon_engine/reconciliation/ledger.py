"""
Reconciliation Ledger - durable record of confirmed matches.

The ledger is the only component that decides whether an entry is
reconciled. It keeps an index of active matches by entry id, rebuilt from the
store on start-up and updated on every confirm / reverse. All reads and writes
run under one re-entrant lock acquired with a deadline, so an auto-reconcile
pass holding the lock is serialized with manual confirmations and reversals.
"""

import threading
from contextlib import contextmanager
from datetime import date, datetime
from typing import Dict, Iterator, List, Optional

import structlog

from ..exceptions import (
    AlreadyReversedError,
    ConflictError,
    LedgerIntegrityError,
    NotFoundError,
    StorageTimeoutError,
)
from ..models import EntryKind, LedgerEntry, Match, utc_now
from ..storage import EntrySource, LedgerStore

logger = structlog.get_logger()


class ReconciliationLedger:
    """Append-mostly store of matches plus derived unreconciled views."""

    def __init__(
        self,
        store: LedgerStore,
        source: EntrySource,
        lock_timeout: float = 10.0,
    ):
        self.store = store
        self.source = source
        self.lock_timeout = lock_timeout
        self._lock = threading.RLock()
        self._matches: Dict[str, Match] = {}
        self._active_by_entry: Dict[str, str] = {}
        self._load()

    def _load(self) -> None:
        for match in self.store.load():
            self._matches[match.id] = match
            if match.is_active:
                self._index(match)

        logger.info(
            "Ledger ready",
            matches=len(self._matches),
            reconciled_entries=len(self._active_by_entry),
        )

    def _index(self, match: Match) -> None:
        for entry_id in match.entry_ids:
            existing = self._active_by_entry.get(entry_id)
            if existing is not None and existing != match.id:
                raise LedgerIntegrityError(
                    f"Entry {entry_id} is referenced by active matches "
                    f"{existing} and {match.id}",
                    details={"entry_id": entry_id, "match_ids": [existing, match.id]},
                )
            self._active_by_entry[entry_id] = match.id

    @contextmanager
    def exclusive(self, timeout: Optional[float] = None) -> Iterator["ReconciliationLedger"]:
        """
        Hold the ledger lock for the duration of the block.

        Raises:
            StorageTimeoutError: if the lock is not acquired within ``timeout``
        """
        wait = self.lock_timeout if timeout is None else max(timeout, 0.0)
        if not self._lock.acquire(timeout=wait):
            raise StorageTimeoutError(
                f"Ledger not available within {wait:.2f}s",
                details={"timeout_seconds": wait},
            )
        try:
            yield self
        finally:
            self._lock.release()

    # Writes

    def confirm(self, match: Match, timeout: Optional[float] = None) -> str:
        """
        Persist a new match. All-or-nothing.

        Raises:
            ConflictError: if any entry is already bound to an active match
            StorageTimeoutError: if the ledger cannot be reached in time
        """
        if not match.is_active:
            raise ValueError(f"Cannot confirm a reversed match: {match.id}")

        with self.exclusive(timeout):
            if match.id in self._matches:
                raise ValueError(f"Match id already used: {match.id}")

            taken = [eid for eid in match.entry_ids if eid in self._active_by_entry]
            if taken:
                raise ConflictError(taken)

            try:
                self.store.append(match)
            except OSError as e:
                raise StorageTimeoutError(f"Ledger write failed: {e}") from e

            self._matches[match.id] = match
            self._index(match)

        logger.info(
            "Match confirmed",
            match_id=match.id,
            entry_ids=list(match.entry_ids),
            origin=match.origin.value,
            confidence=match.confidence,
        )
        return match.id

    def reverse(
        self,
        match_id: str,
        timeout: Optional[float] = None,
        at: Optional[datetime] = None,
    ) -> Match:
        """
        Tombstone a match and free its entries.

        Raises:
            NotFoundError: unknown match id
            AlreadyReversedError: the match is already inactive
        """
        with self.exclusive(timeout):
            match = self._matches.get(match_id)
            if match is None:
                raise NotFoundError(f"Match not found: {match_id}")
            if not match.is_active:
                raise AlreadyReversedError(match_id)

            tombstone = match.reversed(at or utc_now())
            try:
                self.store.mark_reversed(match_id, tombstone.reversed_at)
            except OSError as e:
                raise StorageTimeoutError(f"Ledger write failed: {e}") from e

            self._matches[match_id] = tombstone
            for entry_id in match.entry_ids:
                self._active_by_entry.pop(entry_id, None)

        logger.info(
            "Match reversed",
            match_id=match_id,
            entry_ids=list(match.entry_ids),
        )
        return tombstone

    # Reads

    def get(self, match_id: str, timeout: Optional[float] = None) -> Match:
        with self.exclusive(timeout):
            match = self._matches.get(match_id)
        if match is None:
            raise NotFoundError(f"Match not found: {match_id}")
        return match

    def matches(
        self,
        include_reversed: bool = True,
        timeout: Optional[float] = None,
    ) -> List[Match]:
        with self.exclusive(timeout):
            matches = list(self._matches.values())
        if include_reversed:
            return matches
        return [m for m in matches if m.is_active]

    def is_reconciled(self, entry_id: str) -> bool:
        with self.exclusive():
            return entry_id in self._active_by_entry

    def active_match(
        self,
        entry_id: str,
        timeout: Optional[float] = None,
    ) -> Optional[Match]:
        """
        The single active match referencing ``entry_id``, if any.

        The invariant is re-checked against the full match list rather than
        trusted from the index.
        """
        with self.exclusive(timeout):
            active = [
                m for m in self._matches.values()
                if m.is_active and entry_id in m.entry_ids
            ]
            indexed = self._active_by_entry.get(entry_id)

        if len(active) > 1:
            raise LedgerIntegrityError(
                f"Entry {entry_id} is referenced by {len(active)} active matches",
                details={"entry_id": entry_id, "match_ids": [m.id for m in active]},
            )
        found = active[0] if active else None
        if (found.id if found else None) != indexed:
            raise LedgerIntegrityError(
                f"Active match index out of sync for entry {entry_id}",
                details={"entry_id": entry_id, "indexed": indexed},
            )
        return found

    def snapshot(self, timeout: Optional[float] = None) -> List[LedgerEntry]:
        """
        Current source entries with ``reconciled`` set from the ledger.

        The flag on the incoming records is ignored; the ledger is the
        authority on which entries are bound to an active match.
        """
        with self.exclusive(timeout):
            entries = self.source.list_entries()
            return [
                entry.with_reconciled(entry.id in self._active_by_entry)
                for entry in entries
            ]

    def unreconciled_entries(
        self,
        kind: Optional[EntryKind] = None,
        as_of: Optional[date] = None,
        timeout: Optional[float] = None,
    ) -> List[LedgerEntry]:
        """Entries with no active match, optionally by kind and dated on/before ``as_of``."""
        return [
            entry for entry in self.snapshot(timeout)
            if not entry.reconciled
            and (kind is None or entry.kind == kind)
            and (as_of is None or entry.date <= as_of)
        ]
