"""Tests for the per-place scope store."""

import json

import pytest

from placescan.errors import NotFoundError, ParseError, ValidationError
from placescan.store import (
    PROPERTIES_FILE,
    REMOTES_FILE,
    SCRIPTS_FILE,
    SCRIPTS_FULL_FILE,
    SERVICES_FILE,
    TREE_FILE,
    ScopeStore,
)

from .conftest import PLACE_ID, SAMPLE_SOURCE, make_node


def _read(store: ScopeStore, filename: str):
    return json.loads((store.place_dir(PLACE_ID) / filename).read_text(encoding="utf-8"))


class TestRawFiles:
    def test_save_load_roundtrip(self, store: ScopeStore) -> None:
        data = {"test": True, "nested": [1, 2, {"x": "y"}]}
        store.save(PLACE_ID, "test.json", data)
        assert store.load(PLACE_ID, "test.json") == data

    def test_load_missing_raises_not_found(self, store: ScopeStore) -> None:
        with pytest.raises(NotFoundError):
            store.load(PLACE_ID, TREE_FILE)

    def test_load_malformed_raises_parse_error(self, store: ScopeStore) -> None:
        store.place_dir(PLACE_ID).mkdir(parents=True)
        (store.place_dir(PLACE_ID) / TREE_FILE).write_text("{not json")
        with pytest.raises(ParseError):
            store.load(PLACE_ID, TREE_FILE)

    def test_saved_file_is_pretty_printed(self, store: ScopeStore) -> None:
        store.save(PLACE_ID, SERVICES_FILE, [{"name": "Workspace"}])
        text = (store.place_dir(PLACE_ID) / SERVICES_FILE).read_text(encoding="utf-8")
        assert "\n  " in text

    def test_delete_absent_place_is_noop(self, store: ScopeStore) -> None:
        assert store.delete(424242) is False
        assert store.exists(424242) is False

    def test_delete_removes_directory(self, store: ScopeStore) -> None:
        store.save(PLACE_ID, "manifest.json", {"place_id": PLACE_ID})
        assert store.exists(PLACE_ID)
        assert store.delete(PLACE_ID) is True
        assert not store.place_dir(PLACE_ID).exists()
        assert store.exists(PLACE_ID) is False


class TestWrite:
    def test_append_preserves_submission_order(self, store: ScopeStore) -> None:
        a = [make_node("A", "Part", "Workspace.A"), make_node("B", "Part", "Workspace.B")]
        b = [make_node("C", "Part", "Workspace.C")]
        store.write(PLACE_ID, "tree", a)
        store.write(PLACE_ID, "tree", b)
        assert _read(store, TREE_FILE) == a + b

    def test_append_single_object_pushed_as_element(self, store: ScopeStore) -> None:
        store.write(PLACE_ID, "remotes", [{"path": "RS.Buy", "class_name": "RemoteEvent"}])
        store.write(PLACE_ID, "remotes", {"path": "RS.Sell", "class_name": "RemoteFunction"})
        assert [r["path"] for r in _read(store, REMOTES_FILE)] == ["RS.Buy", "RS.Sell"]

    def test_resubmitted_chunk_duplicates(self, store: ScopeStore) -> None:
        chunk = [{"path": "Workspace.Part", "class_name": "Part", "properties": {"Anchored": "true"}}]
        store.write(PLACE_ID, "properties", chunk)
        store.write(PLACE_ID, "properties", chunk)
        assert len(_read(store, PROPERTIES_FILE)) == 2

    def test_services_overwrite(self, store: ScopeStore) -> None:
        store.write(PLACE_ID, "services", [{"name": "Workspace"}])
        store.write(PLACE_ID, "services", {"Lighting": {"child_count": 3}})
        assert _read(store, SERVICES_FILE) == {"Lighting": {"child_count": 3}}

    def test_corrupt_append_file_treated_as_empty(self, store: ScopeStore, audit) -> None:
        store.place_dir(PLACE_ID).mkdir(parents=True)
        (store.place_dir(PLACE_ID) / TREE_FILE).write_text("[{broken")
        store.write(PLACE_ID, "tree", [make_node("A", "Part", "A")])
        assert _read(store, TREE_FILE) == [make_node("A", "Part", "A")]
        events = [e["event"] for e in audit.read_tail(10)]
        assert "scope_parse_error" in events

    def test_non_array_append_file_treated_as_empty(self, store: ScopeStore) -> None:
        store.save(PLACE_ID, TREE_FILE, {"not": "an array"})
        store.write(PLACE_ID, "tree", [make_node("A", "Part", "A")])
        assert _read(store, TREE_FILE) == [make_node("A", "Part", "A")]

    def test_strict_reads_surface_parse_error(self, storage_dir) -> None:
        strict = ScopeStore(storage_dir, strict_reads=True)
        strict.place_dir(PLACE_ID).mkdir(parents=True)
        (strict.place_dir(PLACE_ID) / TREE_FILE).write_text("[{broken")
        with pytest.raises(ParseError):
            strict.write(PLACE_ID, "tree", [])

    def test_unknown_scope_rejected(self, store: ScopeStore, sessions) -> None:
        with pytest.raises(ValidationError):
            store.write(PLACE_ID, "logs", [])
        assert sessions.list() == []

    def test_write_touches_session(self, store: ScopeStore, sessions) -> None:
        store.write(PLACE_ID, "tree", [])
        store.write(PLACE_ID, "remotes", [])
        [session] = sessions.list()
        assert session.place_id == PLACE_ID
        assert session.status == "scanning"
        assert session.progress == "receiving remotes"


class TestScriptChunks:
    def test_outline_and_full_source_written(self, store: ScopeStore) -> None:
        store.write(PLACE_ID, "scripts", [
            {
                "path": "ReplicatedStorage.ShopHandler",
                "class_name": "ModuleScript",
                "source": SAMPLE_SOURCE,
                "decompiled": True,
            },
            {
                "path": "ServerScriptService.Empty",
                "class_name": "Script",
                "enabled": False,
                "source": "",
            },
        ])

        entries = _read(store, SCRIPTS_FILE)
        assert [e["path"] for e in entries] == ["ReplicatedStorage.ShopHandler", "ServerScriptService.Empty"]
        shop, empty = entries
        assert shop["decompiled"] is True
        assert shop["outline"]["services"] == ["ReplicatedStorage", "Players"]
        assert shop["size"] == len(SAMPLE_SOURCE.encode("utf-8"))
        assert shop["line_count"] == shop["outline"]["line_count"]
        assert "outline" not in empty
        assert empty["enabled"] is False
        assert empty["line_count"] == 0

        full = _read(store, SCRIPTS_FULL_FILE)
        assert full == [{"path": "ReplicatedStorage.ShopHandler", "source": SAMPLE_SOURCE}]

    def test_scripts_payload_must_be_array(self, store: ScopeStore) -> None:
        with pytest.raises(ValidationError):
            store.write(PLACE_ID, "scripts", {"path": "x"})

    def test_non_object_records_skipped(self, store: ScopeStore) -> None:
        store.write(PLACE_ID, "scripts", ["junk", {"path": "A", "class_name": "Script", "source": "x = 1"}])
        assert [e["path"] for e in _read(store, SCRIPTS_FILE)] == ["A"]


class TestClearScope:
    def test_clear_scripts_removes_both_files(self, store: ScopeStore) -> None:
        store.write(PLACE_ID, "scripts", [{"path": "A", "class_name": "Script", "source": "x = 1"}])
        assert store.clear_scope(PLACE_ID, "scripts") is True
        assert store.list_files(PLACE_ID) == []

    def test_clear_missing_scope_is_noop(self, store: ScopeStore) -> None:
        assert store.clear_scope(PLACE_ID, "tree") is False

    def test_clear_unknown_scope(self, store: ScopeStore) -> None:
        with pytest.raises(ValidationError):
            store.clear_scope(PLACE_ID, "manifest")
