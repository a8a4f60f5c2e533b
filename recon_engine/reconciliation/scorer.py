"""
Scorer - confidence of a candidate pair.

score = 0.5 * amount_term + 0.3 * date_term + 0.2 * description_term

    amount_term      = 1 - min(1, amount_diff / max(|a|, |b|, 1))
    date_term        = 1 - min(1, date_delta_days / max_date_delta_days)
    description_term = token-set Jaccard overlap of the descriptions

The weights are fixed so scores are reproducible across runs and machines.
The terms are summed in a fixed order using plain IEEE-754 doubles.
"""

from ..models import Candidate, LedgerEntry, MatchWindow
from ..utils.text_similarity import token_overlap
from .candidates import amount_difference, days_between

AMOUNT_WEIGHT = 0.5
DATE_WEIGHT = 0.3
DESCRIPTION_WEIGHT = 0.2


class Scorer:
    """Weighted confidence score in [0, 1] for a pair of entries."""

    def __init__(self, window: MatchWindow):
        self.window = window.validate()

    def score(self, a: LedgerEntry, b: LedgerEntry) -> float:
        amount = self.amount_term(a, b)
        date_ = self.date_term(a, b)
        description = self.description_term(a, b)

        total = (
            AMOUNT_WEIGHT * amount
            + DATE_WEIGHT * date_
            + DESCRIPTION_WEIGHT * description
        )
        return min(1.0, max(0.0, total))

    def score_candidate(
        self,
        candidate: Candidate,
        source: LedgerEntry,
        target: LedgerEntry,
    ) -> Candidate:
        """Return the candidate carrying its score."""
        return candidate.with_score(self.score(source, target))

    def amount_term(self, a: LedgerEntry, b: LedgerEntry) -> float:
        scale = max(abs(a.amount_cents), abs(b.amount_cents), 1)
        return 1.0 - min(1.0, amount_difference(a, b) / scale)

    def date_term(self, a: LedgerEntry, b: LedgerEntry) -> float:
        return 1.0 - min(1.0, days_between(a, b) / self.window.max_date_delta_days)

    def description_term(self, a: LedgerEntry, b: LedgerEntry) -> float:
        return token_overlap(a.description, b.description)
