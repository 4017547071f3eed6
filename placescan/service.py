from __future__ import annotations

from typing import Any, Dict, List, Optional

from .audit import AuditLedger
from .config import ScannerConfig
from .errors import ScanError
from .manifest import ManifestBuilder
from .models import GameManifest, GameQuery, ScanCompleteRequest, ScanSession
from .query import QueryEngine
from .sessions import ScanSessions
from .store import ScopeStore


class ScannerService:
    """Operation set the HTTP, MCP and CLI layers call into."""

    def __init__(self, config: ScannerConfig) -> None:
        self.config = config
        self.audit = AuditLedger(config.audit_log_path)
        self.sessions = ScanSessions()
        self.store = ScopeStore(
            config.storage_dir,
            sessions=self.sessions,
            audit=self.audit,
            strict_reads=config.strict_reads,
        )
        self.manifests = ManifestBuilder(self.store)
        self.queries = QueryEngine(self.store)

    @classmethod
    def from_config(cls, config: Optional[ScannerConfig] = None) -> "ScannerService":
        return cls(config or ScannerConfig())

    # ----------------------------
    # Ingest
    # ----------------------------

    def submit_chunk(self, place_id: int, scope_type: str, payload: Any, chunk_index: Optional[int] = None) -> Dict[str, Any]:
        result = self.store.write(place_id, scope_type, payload)
        self.audit.audit_event(
            "scan_chunk",
            {"placeId": int(place_id), "chunkType": scope_type, "chunkIndex": chunk_index, **result},
        )
        return result

    def finalize_scan(self, req: ScanCompleteRequest) -> GameManifest:
        try:
            manifest = self.manifests.finalize(req)
        except ScanError as exc:
            self.audit.audit_event("scan_complete_error", {"placeId": req.place_id, "error": exc.message})
            raise
        self.audit.audit_event(
            "scan_complete",
            {
                "placeId": manifest.place_id,
                "placeName": manifest.place_name,
                "treeHash": manifest.tree_hash,
                "instanceCount": manifest.instance_count,
                "scriptCount": manifest.script_count,
                "remoteCount": manifest.remote_count,
            },
        )
        return manifest

    def cancel_scan(self, place_id: int) -> bool:
        removed = self.sessions.cancel(place_id)
        if removed:
            self.audit.audit_event("scan_cancel", {"placeId": int(place_id)})
        return removed

    def list_active_scans(self) -> List[ScanSession]:
        return self.sessions.list()

    # ----------------------------
    # Retrieval
    # ----------------------------

    def get_manifest(self, place_id: int) -> GameManifest:
        return self.queries.get_manifest(place_id)

    def get_scope(self, place_id: int, scope: str, query: Optional[GameQuery] = None) -> Any:
        return self.queries.get_scope(place_id, scope, query)

    def list_manifests(self) -> List[GameManifest]:
        return self.queries.list_manifests()

    def list_scopes(self, place_id: int) -> List[str]:
        return self.queries.list_scopes(place_id)

    def target_exists(self, place_id: int) -> bool:
        return self.queries.exists(place_id)

    def delete_target(self, place_id: int) -> bool:
        removed = self.queries.delete(place_id)
        self.audit.audit_event("game_delete", {"placeId": int(place_id), "removed": removed})
        return removed

    def clear_scope(self, place_id: int, scope: str) -> bool:
        removed = self.store.clear_scope(place_id, scope)
        self.audit.audit_event("scope_clear", {"placeId": int(place_id), "scope": scope, "removed": removed})
        return removed

    def recent_events(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return self.audit.read_tail(limit if limit is not None else self.config.events_limit)
