"""Utility modules."""

from .audit_logger import AuditLogger
from .logging import setup_logging
from .text_similarity import token_overlap, tokenize

__all__ = ["AuditLogger", "setup_logging", "token_overlap", "tokenize"]
