"""
Audit logging for reconciliation decisions.
"""

import json
from collections import Counter
from pathlib import Path
from typing import List, Optional

import structlog

from ..models import AuditAction, AuditEntry, utc_now

logger = structlog.get_logger()


class AuditLogger:
    """
    Logger for audit trail of reconciliation decisions.
    Keeps entries in memory, mirrors them to structlog and can export to JSON.
    """

    def __init__(self, job_id: str, reports_dir: Optional[Path] = None):
        self.job_id = job_id
        self.reports_dir = reports_dir
        self.entries: List[AuditEntry] = []

    def log(self, entry: AuditEntry) -> AuditEntry:
        """Add an audit entry."""
        self.entries.append(entry)

        log = logger.info if entry.success else logger.warning
        log(
            entry.message,
            job_id=self.job_id,
            action=entry.action.value,
            entry_ids=entry.entry_ids,
            match_id=entry.match_id,
            success=entry.success,
        )
        return entry

    def record(
        self,
        action: AuditAction,
        message: str,
        entry_ids: Optional[List[str]] = None,
        match_id: Optional[str] = None,
        success: bool = True,
        error_message: Optional[str] = None,
        **details,
    ) -> AuditEntry:
        """Build and log an entry in one call."""
        return self.log(AuditEntry(
            action=action,
            entry_ids=list(entry_ids or []),
            match_id=match_id,
            message=message,
            details=details,
            success=success,
            error_message=error_message,
        ))

    def get_entries(
        self,
        action_filter: Optional[AuditAction] = None,
        success_only: bool = False,
    ) -> List[AuditEntry]:
        """Get filtered audit entries."""
        entries = self.entries

        if action_filter:
            entries = [e for e in entries if e.action == action_filter]

        if success_only:
            entries = [e for e in entries if e.success]

        return entries

    def export_to_file(self, output_path: Optional[Path] = None) -> Path:
        """Export audit log to JSON file."""
        if output_path is None:
            if self.reports_dir is None:
                raise ValueError("No output path and no reports directory configured")
            output_path = self.reports_dir / f"audit_{self.job_id}.json"

        output_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "job_id": self.job_id,
            "exported_at": utc_now().isoformat(),
            "total_entries": len(self.entries),
            "entries": [e.to_dict() for e in self.entries],
        }

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        logger.info("Audit log exported", path=str(output_path))
        return output_path

    def summary(self) -> dict:
        """Get summary statistics of audit log."""
        action_counts = Counter(e.action.value for e in self.entries)
        success_count = sum(1 for e in self.entries if e.success)

        return {
            "total_entries": len(self.entries),
            "success_count": success_count,
            "error_count": len(self.entries) - success_count,
            "action_counts": dict(action_counts),
        }
