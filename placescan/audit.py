from __future__ import annotations

import json
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional


class AuditLedger:
    """Append-only JSONL event log. Writes are best-effort and never raise."""

    def __init__(self, path: Optional[Path]) -> None:
        self.path = Path(path) if path is not None else None
        self._lock = threading.RLock()

    def audit_event(self, event: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        record = {"ts": time.time(), "event": event, **payload}
        if self.path is None:
            return record
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with self.path.open("a", encoding="utf-8") as f:
                    f.write(json.dumps(record, ensure_ascii=True, default=str) + "\n")
            except OSError:
                pass
        return record

    def read_tail(self, limit: int) -> List[Dict[str, Any]]:
        if limit <= 0 or self.path is None:
            return []
        try:
            lines = self.path.read_text(encoding="utf-8").splitlines()
        except OSError:
            return []
        out = []
        for line in lines[-limit:]:
            try:
                out.append(json.loads(line))
            except ValueError:
                continue
        return out
