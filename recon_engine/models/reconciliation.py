"""Reconciliation result models."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Tuple
from uuid import uuid4

from ..exceptions import InvalidWindowError
from .enums import AuditAction, EntryState, MatchOrigin


def utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class MatchWindow:
    """Date and amount tolerance used to enumerate candidates."""
    max_date_delta_days: int = 5
    max_amount_delta_ratio: float = 0.01

    def validate(self) -> "MatchWindow":
        if self.max_date_delta_days <= 0:
            raise InvalidWindowError(
                f"max_date_delta_days must be positive, got {self.max_date_delta_days}"
            )
        if not self.max_amount_delta_ratio > 0:
            raise InvalidWindowError(
                f"max_amount_delta_ratio must be positive, got {self.max_amount_delta_ratio}"
            )
        return self


def validate_threshold(threshold: float) -> float:
    """Check an auto-confirm threshold lies in [0, 1]."""
    if not 0.0 <= threshold <= 1.0:
        raise InvalidWindowError(
            f"auto_confirm_threshold must be within [0, 1], got {threshold}"
        )
    return threshold


@dataclass(frozen=True)
class Candidate:
    """A proposed pairing between two ledger entries."""
    source_id: str
    target_id: str
    score: float = 0.0

    # Match details
    date_delta_days: int = 0
    amount_delta_cents: int = 0

    def __post_init__(self):
        if self.source_id == self.target_id:
            raise ValueError(f"Candidate cannot pair entry {self.source_id} with itself")

    @property
    def entry_ids(self) -> Tuple[str, str]:
        return (self.source_id, self.target_id)

    @property
    def pair_key(self) -> frozenset:
        """Direction-free identity of the pair."""
        return frozenset(self.entry_ids)

    def with_score(self, score: float) -> "Candidate":
        return replace(self, score=score)

    def sort_key(self) -> Tuple[float, int, str, str]:
        """Score desc, then closer dates, then lexicographic ids."""
        return (-self.score, self.date_delta_days, self.source_id, self.target_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_id": self.source_id,
            "target_id": self.target_id,
            "score": self.score,
            "date_delta_days": self.date_delta_days,
            "amount_delta_cents": self.amount_delta_cents,
        }


@dataclass(frozen=True)
class Match:
    """
    A confirmed reconciliation between two or more entries.

    Matches are never mutated in place. Reversal returns a tombstoned copy
    with ``reversed_at`` set; the original record stays in the audit trail.
    """
    entry_ids: Tuple[str, ...]
    confidence: float = 1.0
    origin: MatchOrigin = MatchOrigin.AUTOMATIC
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utc_now)
    reversed_at: Optional[datetime] = None

    def __post_init__(self):
        # Keep order, drop duplicates
        ids = tuple(dict.fromkeys(self.entry_ids))
        if len(ids) < 2:
            raise ValueError("A match needs at least two distinct entries")
        object.__setattr__(self, "entry_ids", ids)

    @property
    def is_active(self) -> bool:
        return self.reversed_at is None

    def reversed(self, at: Optional[datetime] = None) -> "Match":
        """Return the tombstone of this match."""
        return replace(self, reversed_at=at or utc_now())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "entry_ids": list(self.entry_ids),
            "confidence": self.confidence,
            "origin": self.origin.value,
            "created_at": self.created_at.isoformat(),
            "reversed_at": self.reversed_at.isoformat() if self.reversed_at else None,
            "is_active": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Match":
        reversed_at = data.get("reversed_at")
        return cls(
            id=data["id"],
            entry_ids=tuple(data["entry_ids"]),
            confidence=float(data["confidence"]),
            origin=MatchOrigin(data["origin"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            reversed_at=datetime.fromisoformat(reversed_at) if reversed_at else None,
        )


@dataclass
class AuditEntry:
    """An entry in the audit log."""
    id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=utc_now)

    # Action
    action: AuditAction = AuditAction.MATCH_CONFIRMED

    # Context
    entry_ids: List[str] = field(default_factory=list)
    match_id: Optional[str] = None

    # Details
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    # Outcome
    success: bool = True
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "action": self.action.value,
            "entry_ids": self.entry_ids,
            "match_id": self.match_id,
            "message": self.message,
            "details": self.details,
            "success": self.success,
            "error_message": self.error_message,
        }


@dataclass
class ReconciliationSummary:
    """Outcome of one auto-reconcile pass."""
    pass_id: str = field(default_factory=lambda: str(uuid4()))

    # Results
    matches: List[Match] = field(default_factory=list)
    suggestions: List[Candidate] = field(default_factory=list)
    unmatched_ids: List[str] = field(default_factory=list)

    # Recoverable failures (conflicts) seen during the pass
    conflicts: List[str] = field(default_factory=list)

    # Pass bookkeeping
    candidates_considered: int = 0
    cancelled: bool = False
    audit_log: List[AuditEntry] = field(default_factory=list)

    # Timing
    started_at: datetime = field(default_factory=utc_now)
    completed_at: Optional[datetime] = None

    @property
    def confirmed(self) -> int:
        return len(self.matches)

    @property
    def suggested(self) -> int:
        return len(self.suggestions)

    @property
    def still_unmatched(self) -> int:
        return len(self.unmatched_ids)

    @property
    def processing_time_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    def entry_state(self, entry_id: str) -> EntryState:
        """State of an entry as seen at the end of this pass."""
        if any(entry_id in m.entry_ids for m in self.matches):
            return EntryState.MATCHED
        if any(entry_id in s.entry_ids for s in self.suggestions):
            return EntryState.SUGGESTED
        return EntryState.UNMATCHED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pass_id": self.pass_id,
            "confirmed": self.confirmed,
            "suggested": self.suggested,
            "still_unmatched": self.still_unmatched,
            "matches": [m.to_dict() for m in self.matches],
            "suggestions": [s.to_dict() for s in self.suggestions],
            "unmatched_ids": self.unmatched_ids,
            "conflicts": self.conflicts,
            "cancelled": self.cancelled,
            "processing_time_seconds": round(self.processing_time_seconds, 3),
        }
