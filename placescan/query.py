from __future__ import annotations

import copy
import json
from typing import Any, Dict, List, Optional

from .errors import NotFoundError, ParseError, StorageIOError, ValidationError
from .models import GameManifest, GameQuery
from .store import MANIFEST_FILE, SCOPE_FILES, SCRIPTS_FULL_FILE, ScopeStore, _unknown_scope


def _text(entry: Any, key: str) -> str:
    if not isinstance(entry, dict):
        return ""
    value = entry.get(key)
    return value if isinstance(value, str) else ""


def _matches_class(entry: Any, query: GameQuery) -> bool:
    if not query.class_name:
        return True
    return _text(entry, "class_name").lower() == query.class_name.lower()


def trim_depth(node: Any, current: int, max_depth: int) -> None:
    if not isinstance(node, dict):
        return
    if current >= max_depth:
        node.pop("children", None)
        return
    children = node.get("children")
    if isinstance(children, list):
        for child in children:
            trim_depth(child, current + 1, max_depth)


def filter_tree(tree: Any, query: GameQuery) -> Any:
    if not isinstance(tree, list):
        return tree
    prefix = (query.path or "").lower()
    search = (query.search or "").lower()
    out: List[Any] = []
    for node in tree:
        path = _text(node, "path").lower()
        name = _text(node, "name").lower()
        if prefix and not path.startswith(prefix):
            continue
        if not _matches_class(node, query):
            continue
        if search and search not in name and search not in path:
            continue
        if query.max_depth is not None:
            node = copy.deepcopy(node)
            trim_depth(node, 0, query.max_depth)
        out.append(node)
    return out


def filter_scripts(data: Any, query: GameQuery) -> Any:
    if not isinstance(data, list):
        return data
    prefix = (query.path or "").lower()
    search = (query.search or "").lower()
    out: List[Any] = []
    for entry in data:
        path = _text(entry, "path").lower()
        if prefix and not path.startswith(prefix):
            continue
        if not _matches_class(entry, query):
            continue
        if search and search not in path:
            outline = entry.get("outline") if isinstance(entry, dict) else None
            if outline is None:
                continue
            if search not in json.dumps(outline, ensure_ascii=False).lower():
                continue
        out.append(entry)
    return out


def filter_entries(data: Any, query: GameQuery) -> Any:
    if not isinstance(data, list):
        return data
    prefix = (query.path or "").lower()
    search = (query.search or "").lower()
    out: List[Any] = []
    for entry in data:
        path = _text(entry, "path").lower()
        name = _text(entry, "name").lower()
        if prefix and not path.startswith(prefix) and not name.startswith(prefix):
            continue
        if not _matches_class(entry, query):
            continue
        if search and search not in path and search not in name:
            continue
        out.append(entry)
    return out


class QueryEngine:
    def __init__(self, store: ScopeStore) -> None:
        self.store = store

    def get_manifest(self, place_id: int) -> GameManifest:
        try:
            data = self.store.load(place_id, MANIFEST_FILE)
        except NotFoundError as exc:
            raise NotFoundError(f"No scan data found for place {place_id}") from exc
        try:
            return GameManifest.model_validate(data)
        except ValueError as exc:
            raise ParseError(f"Invalid manifest for place {place_id}: {exc}") from exc

    def scope_file(self, scope: str, include_source: bool = False) -> str:
        if scope not in SCOPE_FILES:
            raise ValidationError(_unknown_scope(scope))
        if scope == "scripts" and include_source:
            return SCRIPTS_FULL_FILE
        return SCOPE_FILES[scope]

    def get_scope(self, place_id: int, scope: str, query: Optional[GameQuery] = None) -> Any:
        query = query or GameQuery()
        filename = self.scope_file(scope, query.include_source)
        try:
            data = self.store.load(place_id, filename)
        except NotFoundError as exc:
            raise NotFoundError(f"No {scope} data found for place {place_id}") from exc

        if scope == "tree":
            return filter_tree(data, query)
        if scope == "scripts":
            return filter_scripts(data, query)
        return filter_entries(data, query)

    def list_scopes(self, place_id: int) -> List[str]:
        files = set(self.store.list_files(place_id))
        return [scope for scope, filename in SCOPE_FILES.items() if filename in files]

    def list_manifests(self) -> List[GameManifest]:
        places_dir = self.store.places_dir
        if not places_dir.exists():
            return []
        try:
            entries = list(places_dir.iterdir())
        except OSError as exc:
            raise StorageIOError(f"Failed to read storage directory: {exc}") from exc

        manifests: List[GameManifest] = []
        for entry in entries:
            if not entry.is_dir() or not entry.name.isdigit():
                continue
            try:
                data = self.store.load(int(entry.name), MANIFEST_FILE)
                manifests.append(GameManifest.model_validate(data))
            except (NotFoundError, ParseError, StorageIOError, ValueError):
                # Unreadable manifests are left out of the listing.
                continue
        manifests.sort(key=lambda m: m.scanned_at, reverse=True)
        return manifests

    def exists(self, place_id: int) -> bool:
        return self.store.exists(place_id)

    def delete(self, place_id: int) -> bool:
        return self.store.delete(place_id)


def summarize_manifest(manifest: GameManifest) -> Dict[str, Any]:
    return {
        "place_id": manifest.place_id,
        "place_name": manifest.place_name,
        "tree_hash": manifest.tree_hash,
        "scanned_at": manifest.scanned_at.isoformat(),
        "instance_count": manifest.instance_count,
        "script_count": manifest.script_count,
        "remote_count": manifest.remote_count,
    }
