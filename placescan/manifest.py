from __future__ import annotations

from datetime import datetime, timezone

from .errors import NotFoundError, ParseError, StorageIOError
from .hasher import compute_tree_hash
from .models import GameManifest, ScanCompleteRequest
from .store import MANIFEST_FILE, TREE_FILE, ScopeStore


class ManifestBuilder:
    def __init__(self, store: ScopeStore) -> None:
        self.store = store

    def _load_tree(self, place_id: int):
        try:
            return self.store.load(place_id, TREE_FILE)
        except NotFoundError:
            return []
        except (ParseError, StorageIOError) as exc:
            if self.store.strict_reads:
                raise
            self.store.audit.audit_event(
                "scope_parse_error",
                {"placeId": int(place_id), "file": TREE_FILE, "error": exc.message},
            )
            return []

    def finalize(self, req: ScanCompleteRequest) -> GameManifest:
        """Hash the accumulated tree and write manifest.json.

        The active session is dropped whether or not the write succeeds.
        """
        try:
            tree = self._load_tree(req.place_id)
            manifest = GameManifest(
                **req.model_dump(),
                tree_hash=compute_tree_hash(tree),
                scanned_at=datetime.now(timezone.utc),
            )
            self.store.save(req.place_id, MANIFEST_FILE, manifest.model_dump(mode="json"))
            return manifest
        finally:
            self.store.sessions.clear(req.place_id)
