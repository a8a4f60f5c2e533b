"""
File-backed storage.

The ledger is an append-only JSON Lines event log: one ``confirmed`` event per
match and one ``reversed`` event per tombstone. Loading replays the log in
order, so the audit trail is the file itself.
"""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Dict, List

import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..models import LedgerEntry, Match
from .base import EntrySource, LedgerStore

logger = structlog.get_logger()

EVENT_CONFIRMED = "confirmed"
EVENT_REVERSED = "reversed"


class JsonEntrySource(EntrySource):
    """
    Reads entry snapshots exported by the CRUD layer.

    Accepted layouts, re-read on every call:

    - a JSON list of records
    - ``{"entries": [...]}``
    - ``{"bank_transactions": [...], "invoices": [...]}`` as exported by the
      bookkeeping app

    Records in this engine's own layout carry a ``kind``; bookkeeping rows
    are recognised by their shape (invoices have a ``type``).
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def list_entries(self) -> List[LedgerEntry]:
        if not self.path.exists():
            logger.warning("Entry snapshot not found", path=str(self.path))
            return []

        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)

        if isinstance(data, list):
            return [parse_record(record) for record in data]

        entries = [parse_record(record) for record in data.get("entries", [])]
        entries.extend(
            LedgerEntry.from_bank_transaction(row)
            for row in data.get("bank_transactions", [])
        )
        entries.extend(LedgerEntry.from_invoice(row) for row in data.get("invoices", []))
        return entries


def parse_record(record: dict) -> LedgerEntry:
    """Build an entry from any supported record shape."""
    if "kind" in record:
        return LedgerEntry.from_dict(record)
    if "type" in record:
        return LedgerEntry.from_invoice(record)
    return LedgerEntry.from_bank_transaction(record)


class JsonlLedgerStore(LedgerStore):
    """Append-only JSON Lines ledger store."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> List[Match]:
        matches: Dict[str, Match] = {}
        if not self.path.exists():
            return []

        with open(self.path, "r", encoding="utf-8", errors="replace") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    event = json.loads(line)
                    if not isinstance(event, dict):
                        raise ValueError("ledger event must be an object")
                except ValueError:
                    # Torn write: the failed append was retried or never committed
                    logger.warning("Malformed ledger line skipped", line=line_no)
                    continue
                kind = event.get("event")
                if kind == EVENT_CONFIRMED:
                    match = Match.from_dict(event["match"])
                    matches[match.id] = match
                elif kind == EVENT_REVERSED:
                    match_id = event["match_id"]
                    if match_id not in matches:
                        logger.warning(
                            "Reversal for unknown match in ledger file",
                            match_id=match_id,
                            line=line_no,
                        )
                        continue
                    matches[match_id] = matches[match_id].reversed(
                        datetime.fromisoformat(event["reversed_at"])
                    )
                else:
                    logger.warning("Unknown ledger event", event=kind, line=line_no)

        logger.debug("Ledger loaded", path=str(self.path), matches=len(matches))
        return list(matches.values())

    def append(self, match: Match) -> None:
        self._write_event({"event": EVENT_CONFIRMED, "match": match.to_dict()})

    def mark_reversed(self, match_id: str, reversed_at: datetime) -> None:
        self._write_event({
            "event": EVENT_REVERSED,
            "match_id": match_id,
            "reversed_at": reversed_at.isoformat(),
        })

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        retry=retry_if_exception_type(OSError),
        reraise=True,
    )
    def _write_event(self, event: dict) -> None:
        """Append one event line in a single write and flush it to disk."""
        data = (json.dumps(event, ensure_ascii=False) + "\n").encode("utf-8")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "ab+") as f:
            f.seek(0, os.SEEK_END)
            if f.tell() > 0:
                f.seek(-1, os.SEEK_END)
                if f.read(1) != b"\n":
                    # Close off a torn line left by a failed attempt
                    data = b"\n" + data
            f.write(data)
            f.flush()
