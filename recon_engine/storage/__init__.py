"""Storage ports and backends."""

from .base import EntrySource, LedgerStore
from .memory import InMemoryEntrySource, InMemoryLedgerStore
from .jsonl import JsonEntrySource, JsonlLedgerStore

__all__ = [
    "EntrySource",
    "LedgerStore",
    "InMemoryEntrySource",
    "InMemoryLedgerStore",
    "JsonEntrySource",
    "JsonlLedgerStore",
]
