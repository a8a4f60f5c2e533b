"""
Matcher - turns scored candidates into a conflict-free set of matches.

Global greedy assignment:
1. Collect candidates for every unreconciled bank transaction against the
   unreconciled pool (bank-to-bank pairs are de-duplicated).
2. Sort by score desc, then date delta asc, then source id, then target id.
3. Walk the list and confirm a candidate iff both ends are still free and
   the score reaches the auto-confirm threshold. Confirmation consumes both
   entries for the rest of the pass. No backtracking.
4. Below-threshold candidates whose ends are both still free become
   suggestions for manual review. They are never auto-confirmed.
5. Everything else stays in the residual unmatched set.

Entry lifecycle: UNMATCHED -> (SUGGESTED) -> MATCHED -> reversed -> UNMATCHED.
"""

import threading
import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

import structlog

from ..exceptions import ConflictError, NotFoundError, StorageTimeoutError
from ..models import (
    AuditAction,
    Candidate,
    LedgerEntry,
    Match,
    MatchOrigin,
    MatchWindow,
    ReconciliationSummary,
    utc_now,
    validate_threshold,
)
from ..utils.audit_logger import AuditLogger
from .candidates import CandidateGenerator
from .ledger import ReconciliationLedger
from .scorer import Scorer

logger = structlog.get_logger()

DEFAULT_AUTO_CONFIRM_THRESHOLD = 0.85


class Matcher:
    """Auto-reconcile passes, manual matches and reversals."""

    def __init__(
        self,
        ledger: ReconciliationLedger,
        generator: Optional[CandidateGenerator] = None,
        reports_dir: Optional[Path] = None,
    ):
        self.ledger = ledger
        self.generator = generator or CandidateGenerator()
        self.reports_dir = reports_dir

    def run(
        self,
        window: MatchWindow,
        auto_confirm_threshold: float = DEFAULT_AUTO_CONFIRM_THRESHOLD,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ReconciliationSummary:
        """
        Execute one auto-reconcile pass over the current unmatched pool.

        Args:
            window: Candidate date/amount tolerance
            auto_confirm_threshold: Minimum score confirmed without review
            timeout: Seconds the whole pass may take (ledger default if None)
            cancel_event: Checked between confirmations; when set the pass
                stops and keeps what it already confirmed

        Returns:
            ReconciliationSummary with matches, suggestions and residuals

        Raises:
            InvalidWindowError: bad window or threshold
            StorageTimeoutError: ledger unavailable; earlier confirmations
                of this pass stay committed
        """
        scorer = Scorer(window)
        validate_threshold(auto_confirm_threshold)

        summary = ReconciliationSummary()
        audit = AuditLogger(summary.pass_id, self.reports_dir)
        summary.audit_log = audit.entries

        budget = self.ledger.lock_timeout if timeout is None else timeout
        deadline = time.monotonic() + budget

        with self.ledger.exclusive(budget):
            pool = [e for e in self.ledger.snapshot() if not e.reconciled]
            candidates = self.collect_candidates(pool, window, scorer)
            summary.candidates_considered = len(candidates)

            audit.record(
                AuditAction.PASS_STARTED,
                "Auto-reconcile pass started",
                pool_size=len(pool),
                candidates=len(candidates),
                threshold=auto_confirm_threshold,
                max_date_delta_days=window.max_date_delta_days,
                max_amount_delta_ratio=window.max_amount_delta_ratio,
            )

            consumed: Set[str] = set()
            try:
                for candidate in candidates:
                    if candidate.score < auto_confirm_threshold:
                        # Sorted by score, nothing further can be confirmed
                        break
                    if candidate.source_id in consumed or candidate.target_id in consumed:
                        continue

                    if cancel_event is not None and cancel_event.is_set():
                        summary.cancelled = True
                        audit.record(
                            AuditAction.PASS_CANCELLED,
                            "Auto-reconcile pass cancelled",
                            confirmed=len(summary.matches),
                        )
                        break

                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise StorageTimeoutError(
                            f"Auto-reconcile pass exceeded {budget:.2f}s",
                            details={"confirmed": len(summary.matches)},
                        )

                    match = Match(
                        entry_ids=candidate.entry_ids,
                        confidence=candidate.score,
                        origin=MatchOrigin.AUTOMATIC,
                    )
                    try:
                        self.ledger.confirm(match, timeout=remaining)
                    except ConflictError as e:
                        consumed.update(e.entry_ids)
                        summary.conflicts.append(e.message)
                        audit.record(
                            AuditAction.MATCH_CONFLICT,
                            "Candidate skipped: entry already reconciled",
                            entry_ids=list(candidate.entry_ids),
                            success=False,
                            error_message=e.message,
                        )
                        continue

                    consumed.update(candidate.entry_ids)
                    summary.matches.append(match)
                    audit.record(
                        AuditAction.MATCH_CONFIRMED,
                        "Auto match confirmed",
                        entry_ids=list(match.entry_ids),
                        match_id=match.id,
                        score=candidate.score,
                        date_delta_days=candidate.date_delta_days,
                        amount_delta_cents=candidate.amount_delta_cents,
                    )
            except StorageTimeoutError as e:
                audit.record(
                    AuditAction.PASS_ABORTED,
                    "Auto-reconcile pass aborted",
                    success=False,
                    error_message=e.message,
                    confirmed=len(summary.matches),
                )
                self._export(audit)
                raise

        summary.suggestions = [
            c for c in candidates
            if c.score < auto_confirm_threshold
            and c.source_id not in consumed
            and c.target_id not in consumed
        ]
        for suggestion in summary.suggestions:
            audit.record(
                AuditAction.SUGGESTION_RAISED,
                "Suggestion for manual review",
                entry_ids=list(suggestion.entry_ids),
                score=suggestion.score,
            )

        summary.unmatched_ids = sorted(e.id for e in pool if e.id not in consumed)
        summary.completed_at = utc_now()

        audit.record(
            AuditAction.PASS_COMPLETED,
            "Auto-reconcile pass complete",
            confirmed=summary.confirmed,
            suggested=summary.suggested,
            still_unmatched=summary.still_unmatched,
            conflicts=len(summary.conflicts),
            cancelled=summary.cancelled,
        )
        self._export(audit)
        return summary

    def collect_candidates(
        self,
        pool: List[LedgerEntry],
        window: MatchWindow,
        scorer: Scorer,
    ) -> List[Candidate]:
        """Scored, de-duplicated and sorted candidates for the pool."""
        by_id: Dict[str, LedgerEntry] = {e.id: e for e in pool}
        sources = sorted((e for e in pool if e.kind.is_bank), key=lambda e: e.id)

        seen: Set[frozenset] = set()
        scored: List[Candidate] = []
        for source in sources:
            for candidate in self.generator.generate(source, pool, window):
                if candidate.pair_key in seen:
                    continue
                seen.add(candidate.pair_key)
                scored.append(scorer.score_candidate(
                    candidate, source, by_id[candidate.target_id]
                ))

        scored.sort(key=Candidate.sort_key)
        return scored

    def confirm_manual(
        self,
        entry_ids: Iterable[str],
        timeout: Optional[float] = None,
    ) -> Match:
        """
        Bind the given entries regardless of score.

        Raises:
            ValueError: fewer than two distinct ids
            NotFoundError: an id is not in the current entry snapshot
            ConflictError: an entry is already reconciled (nothing committed)
        """
        ids = list(dict.fromkeys(entry_ids))
        if len(ids) < 2:
            raise ValueError("A manual match needs at least two distinct entries")

        with self.ledger.exclusive(timeout):
            known = {e.id for e in self.ledger.snapshot()}
            missing = [eid for eid in ids if eid not in known]
            if missing:
                raise NotFoundError(
                    f"Unknown entries: {', '.join(missing)}",
                    details={"entry_ids": missing},
                )

            match = Match(
                entry_ids=tuple(ids),
                confidence=1.0,
                origin=MatchOrigin.MANUAL,
            )
            audit = AuditLogger(f"manual-{match.id}", self.reports_dir)
            try:
                self.ledger.confirm(match, timeout=timeout)
            except ConflictError as e:
                audit.record(
                    AuditAction.MATCH_CONFLICT,
                    "Manual match rejected",
                    entry_ids=ids,
                    success=False,
                    error_message=e.message,
                )
                self._export(audit)
                raise

        audit.record(
            AuditAction.MATCH_CONFIRMED,
            "Manual match confirmed",
            entry_ids=ids,
            match_id=match.id,
        )
        self._export(audit)
        return match

    def reverse(self, match_id: str, timeout: Optional[float] = None) -> Match:
        """Reverse a match; its entries return to the unmatched pool."""
        tombstone = self.ledger.reverse(match_id, timeout=timeout)
        audit = AuditLogger(f"reversal-{match_id}", self.reports_dir)
        audit.record(
            AuditAction.MATCH_REVERSED,
            "Match reversed",
            entry_ids=list(tombstone.entry_ids),
            match_id=match_id,
        )
        self._export(audit)
        return tombstone

    def _export(self, audit: AuditLogger) -> Optional[Path]:
        """
        Write the audit trail under ``reports_dir`` when one is configured.

        Export failures are logged only: the ledger change is already committed.
        """
        if self.reports_dir is None:
            return None
        try:
            return audit.export_to_file()
        except OSError as e:
            logger.error("Audit export failed", job_id=audit.job_id, error=str(e))
            return None
