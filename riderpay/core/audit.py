"""
Audit trail for weekly settlement runs.
One JSON line per run, successful or not; auditing never alters computed rows.
"""
import json
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from riderpay.core.config import settings

class AuditLogger:
    """Append-only run log under ``DATA_DIR/audit``."""

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        self.audit_dir = Path(settings.DATA_DIR) / "audit"
        self.audit_dir.mkdir(parents=True, exist_ok=True)
        self.runs_log = self.audit_dir / f"{tenant_id}_settlement_runs.jsonl"

    def log_settlement_run(
        self,
        batch_id: str,
        files: List[Dict[str, Any]],
        rider_count: int,
        success: bool,
        warnings: Optional[List[str]] = None,
        error_message: Optional[str] = None,
        span: Optional[List[Optional[str]]] = None,
        user_id: Optional[str] = None,
    ):
        """
        Args:
            files: ``{"file_name", "file_hash", "branch_id"}`` per upload, in upload order
            span: judgement date span ``[start, end]`` of the batch
        """
        log_entry = {
            "timestamp": datetime.now().isoformat(),
            "tenant_id": self.tenant_id,
            "batch_id": batch_id,
            "files": files,
            "rider_count": rider_count,
            "success": success,
            "warnings": warnings or [],
            "error_message": error_message,
            "span": span,
            "user_id": user_id,
        }
        with open(self.runs_log, "a", encoding="utf-8") as f:
            f.write(json.dumps(log_entry, default=str, ensure_ascii=False) + "\n")

    def get_run_history(self, days: int = 30) -> List[Dict[str, Any]]:
        """Runs of the last ``days`` days, newest first."""
        if not self.runs_log.exists():
            return []
        cutoff = datetime.now() - timedelta(days=days)
        history = []
        with open(self.runs_log, "r", encoding="utf-8") as f:
            for line in f:
                try:
                    entry = json.loads(line.strip())
                    if datetime.fromisoformat(entry["timestamp"]) >= cutoff:
                        history.append(entry)
                except (json.JSONDecodeError, KeyError, ValueError):
                    continue
        history.sort(key=lambda x: x["timestamp"], reverse=True)
        return history
