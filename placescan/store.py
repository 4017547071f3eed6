from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional

from .audit import AuditLedger
from .errors import NotFoundError, ParseError, SerializationError, StorageIOError, ValidationError
from .models import ScriptEntry, ScriptFull
from .outline import count_lines, generate_outline
from .sessions import ScanSessions

TREE_FILE = "tree.json"
SCRIPTS_FILE = "scripts.json"
SCRIPTS_FULL_FILE = "scripts_full.json"
REMOTES_FILE = "remotes.json"
PROPERTIES_FILE = "properties.json"
SERVICES_FILE = "services.json"
MANIFEST_FILE = "manifest.json"

SCOPE_FILES = {
    "tree": TREE_FILE,
    "scripts": SCRIPTS_FILE,
    "remotes": REMOTES_FILE,
    "properties": PROPERTIES_FILE,
    "services": SERVICES_FILE,
}
APPEND_SCOPES = {"tree", "remotes", "properties"}


def _dumps(data: Any) -> str:
    try:
        return json.dumps(data, indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"Failed to serialize: {exc}") from exc


def _write_atomic_text(path: Path, text: str) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_text(text, encoding="utf-8")
        tmp.replace(path)
    except OSError as exc:
        raise StorageIOError(f"Failed to write {path}: {exc}") from exc


class ScopeStore:
    """Per-place scope files under `<storage>/places/<place_id>/`.

    Append scopes do a plain read-modify-write with no locking; two writers
    on the same place and scope can lose one side's data.
    """

    def __init__(
        self,
        storage_dir: Path,
        sessions: Optional[ScanSessions] = None,
        audit: Optional[AuditLedger] = None,
        strict_reads: bool = False,
    ) -> None:
        self.storage_dir = Path(storage_dir)
        self.sessions = sessions if sessions is not None else ScanSessions()
        self.audit = audit if audit is not None else AuditLedger(None)
        self.strict_reads = strict_reads

    # ----------------------------
    # Paths
    # ----------------------------

    @property
    def places_dir(self) -> Path:
        return self.storage_dir / "places"

    def place_dir(self, place_id: int) -> Path:
        place_id = int(place_id)
        if place_id < 0:
            raise ValidationError(f"Invalid place id: {place_id}")
        return self.places_dir / str(place_id)

    def _ensure_place_dir(self, place_id: int) -> Path:
        path = self.place_dir(place_id)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageIOError(f"Failed to create storage directory: {exc}") from exc
        return path

    # ----------------------------
    # Raw file helpers
    # ----------------------------

    def save(self, place_id: int, filename: str, data: Any) -> None:
        path = self._ensure_place_dir(place_id) / filename
        _write_atomic_text(path, _dumps(data))

    def load(self, place_id: int, filename: str) -> Any:
        path = self.place_dir(place_id) / filename
        if not path.exists():
            raise NotFoundError(f"{filename} not found for place {place_id}")
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageIOError(f"Failed to read {path}: {exc}") from exc
        try:
            return json.loads(content)
        except ValueError as exc:
            raise ParseError(f"Failed to parse {path}: {exc}") from exc

    def load_array_lenient(self, place_id: int, filename: str) -> List[Any]:
        """Existing array for an append; unreadable data counts as empty."""
        try:
            data = self.load(place_id, filename)
        except NotFoundError:
            return []
        except (ParseError, StorageIOError) as exc:
            if self.strict_reads:
                raise
            self.audit.audit_event(
                "scope_parse_error",
                {"placeId": int(place_id), "file": filename, "error": exc.message},
            )
            return []
        if not isinstance(data, list):
            if self.strict_reads:
                raise ParseError(f"{filename} for place {place_id} is not an array")
            self.audit.audit_event(
                "scope_parse_error",
                {"placeId": int(place_id), "file": filename, "error": "not an array"},
            )
            return []
        return data

    def append(self, place_id: int, filename: str, items: Any) -> int:
        self._ensure_place_dir(place_id)
        existing = self.load_array_lenient(place_id, filename)
        if isinstance(items, list):
            existing.extend(items)
        else:
            existing.append(items)
        self.save(place_id, filename, existing)
        return len(existing)

    def exists(self, place_id: int) -> bool:
        return (self.place_dir(place_id) / MANIFEST_FILE).exists()

    def delete(self, place_id: int) -> bool:
        path = self.place_dir(place_id)
        if not path.exists():
            return False
        try:
            shutil.rmtree(path)
        except OSError as exc:
            raise StorageIOError(f"Failed to delete game data: {exc}") from exc
        return True

    def clear_scope(self, place_id: int, scope: str) -> bool:
        if scope not in SCOPE_FILES:
            raise ValidationError(_unknown_scope(scope))
        filenames = [SCOPE_FILES[scope]]
        if scope == "scripts":
            filenames.append(SCRIPTS_FULL_FILE)
        removed = False
        for filename in filenames:
            path = self.place_dir(place_id) / filename
            if not path.exists():
                continue
            try:
                path.unlink()
            except OSError as exc:
                raise StorageIOError(f"Failed to remove {path}: {exc}") from exc
            removed = True
        return removed

    def list_files(self, place_id: int) -> List[str]:
        path = self.place_dir(place_id)
        if not path.is_dir():
            return []
        return sorted(p.name for p in path.iterdir() if p.is_file() and p.suffix == ".json")

    # ----------------------------
    # Chunk ingestion
    # ----------------------------

    def write(self, place_id: int, scope: str, payload: Any) -> Dict[str, Any]:
        if scope not in SCOPE_FILES:
            raise ValidationError(f"Unknown chunk type: {scope}")

        if scope == "services":
            self.save(place_id, SERVICES_FILE, payload)
            result: Dict[str, Any] = {"stored": 1}
        elif scope == "scripts":
            result = self._write_scripts(place_id, payload)
        else:
            total = self.append(place_id, SCOPE_FILES[scope], payload)
            result = {"stored": len(payload) if isinstance(payload, list) else 1, "total": total}

        self.sessions.begin_or_touch(place_id, scope)
        return result

    def _write_scripts(self, place_id: int, payload: Any) -> Dict[str, Any]:
        if not isinstance(payload, list):
            raise ValidationError("scripts data must be an array")

        outlines: List[Dict[str, Any]] = []
        full_sources: List[Dict[str, Any]] = []
        for script in payload:
            if not isinstance(script, dict):
                continue
            entry, full = build_script_records(script)
            outlines.append(entry.model_dump(mode="json", exclude_none=True))
            if full is not None:
                full_sources.append(full.model_dump(mode="json"))

        self.append(place_id, SCRIPTS_FILE, outlines)
        self.append(place_id, SCRIPTS_FULL_FILE, full_sources)
        return {"stored": len(outlines), "withSource": len(full_sources)}


def build_script_records(script: Dict[str, Any]) -> tuple[ScriptEntry, Optional[ScriptFull]]:
    path = script.get("path")
    class_name = script.get("class_name")
    enabled = script.get("enabled")
    source = script.get("source")
    if not isinstance(source, str):
        source = ""

    entry = ScriptEntry(
        path=path if isinstance(path, str) else "",
        class_name=class_name if isinstance(class_name, str) else "",
        enabled=enabled if isinstance(enabled, bool) else None,
        outline=generate_outline(source) if source else None,
        decompiled=script.get("decompiled") is True,
        line_count=count_lines(source),
        size=len(source.encode("utf-8")),
    )
    full = ScriptFull(path=entry.path, source=source) if source else None
    return entry, full


def _unknown_scope(scope: str) -> str:
    return f"Unknown scope '{scope}'. Valid: {', '.join(SCOPE_FILES)}"
