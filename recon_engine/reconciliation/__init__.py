"""Reconciliation engine components."""

from .candidates import CandidateGenerator
from .scorer import Scorer
from .ledger import ReconciliationLedger
from .matcher import Matcher
from .service import ReconciliationService, build_service

__all__ = [
    "CandidateGenerator",
    "Scorer",
    "ReconciliationLedger",
    "Matcher",
    "ReconciliationService",
    "build_service",
]
