"""
Deterministic description similarity.

Descriptions are normalized with rapidfuzz's ``default_process`` (lower-cased,
every non-alphanumeric character replaced by whitespace, trimmed) and compared
as token sets. No locale-dependent collation is involved, so identical inputs
always give identical scores.
"""

from typing import FrozenSet, Optional

from rapidfuzz.utils import default_process


def tokenize(text: Optional[str]) -> FrozenSet[str]:
    """Normalize a free-text label into its set of tokens."""
    if not text:
        return frozenset()
    return frozenset(default_process(text).split())


def token_overlap(left: Optional[str], right: Optional[str]) -> float:
    """
    Jaccard overlap between the token sets of two descriptions.

    Returns 0.0 if either description is empty (or only punctuation).
    """
    left_tokens = tokenize(left)
    right_tokens = tokenize(right)
    if not left_tokens or not right_tokens:
        return 0.0
    shared = len(left_tokens & right_tokens)
    return shared / len(left_tokens | right_tokens)
