"""
Reconciliation Service - entry points used by the surrounding application.

Wires entry source, ledger store, ledger and matcher together and exposes the
three trigger operations plus the read views the UI needs.
"""

import threading
from datetime import date
from typing import Iterable, List, Optional

import structlog

from ..config import Settings, get_settings
from ..models import (
    EntryKind,
    LedgerEntry,
    Match,
    MatchWindow,
    ReconciliationSummary,
)
from ..storage import (
    EntrySource,
    InMemoryLedgerStore,
    JsonEntrySource,
    JsonlLedgerStore,
    LedgerStore,
)
from .candidates import CandidateGenerator
from .ledger import ReconciliationLedger
from .matcher import Matcher

logger = structlog.get_logger()


class ReconciliationService:
    """Facade over the matcher and the reconciliation ledger."""

    def __init__(
        self,
        source: EntrySource,
        store: LedgerStore,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.ledger = ReconciliationLedger(
            store,
            source,
            lock_timeout=self.settings.storage_timeout_seconds,
        )
        self.matcher = Matcher(
            self.ledger,
            generator=CandidateGenerator(self.settings.excluded_invoice_statuses()),
            reports_dir=self.settings.reports_dir,
        )

    def run_auto_reconcile(
        self,
        window: Optional[MatchWindow] = None,
        auto_confirm_threshold: Optional[float] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ReconciliationSummary:
        """Run one idempotent auto-reconcile pass."""
        window = window or self.settings.default_window()
        if auto_confirm_threshold is None:
            auto_confirm_threshold = self.settings.auto_confirm_threshold

        logger.info(
            "Starting auto-reconcile",
            max_date_delta_days=window.max_date_delta_days,
            max_amount_delta_ratio=window.max_amount_delta_ratio,
            threshold=auto_confirm_threshold,
        )

        summary = self.matcher.run(
            window,
            auto_confirm_threshold,
            timeout=timeout,
            cancel_event=cancel_event,
        )

        logger.info(
            "Auto-reconcile complete",
            pass_id=summary.pass_id,
            confirmed=summary.confirmed,
            suggested=summary.suggested,
            still_unmatched=summary.still_unmatched,
            conflicts=len(summary.conflicts),
            cancelled=summary.cancelled,
        )
        return summary

    def confirm_manual_match(
        self,
        entry_ids: Iterable[str],
        timeout: Optional[float] = None,
    ) -> Match:
        return self.matcher.confirm_manual(entry_ids, timeout=timeout)

    def reverse_match(self, match_id: str, timeout: Optional[float] = None) -> Match:
        return self.matcher.reverse(match_id, timeout=timeout)

    def get_match(self, match_id: str) -> Match:
        return self.ledger.get(match_id)

    def active_match(self, entry_id: str) -> Optional[Match]:
        return self.ledger.active_match(entry_id)

    def unreconciled_entries(
        self,
        kind: Optional[EntryKind] = None,
        as_of: Optional[date] = None,
    ) -> List[LedgerEntry]:
        return self.ledger.unreconciled_entries(kind=kind, as_of=as_of)


def build_service(settings: Optional[Settings] = None) -> ReconciliationService:
    """Create a service from configuration."""
    settings = settings or get_settings()

    backend = settings.ledger_backend.lower()
    if backend == "memory":
        store: LedgerStore = InMemoryLedgerStore()
    elif backend == "jsonl":
        store = JsonlLedgerStore(settings.ledger_path)
    else:
        raise ValueError(f"Unknown ledger backend: {settings.ledger_backend}")

    source = JsonEntrySource(settings.entries_path)
    logger.info(
        "Reconciliation service configured",
        backend=backend,
        entries_path=str(settings.entries_path),
    )
    return ReconciliationService(source, store, settings)
