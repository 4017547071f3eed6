"""Tests for the service facade and its audit trail."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from placescan.config import ScannerConfig
from placescan.errors import NotFoundError, ValidationError
from placescan.models import GameQuery, ScanCompleteRequest
from placescan.service import ScannerService

from .conftest import PLACE_ID, SAMPLE_SOURCE, complete_request, make_node


def _events(service: ScannerService):
    return [e["event"] for e in service.recent_events()]


class TestScanLifecycle:
    def test_full_scan(self, service: ScannerService, sample_tree) -> None:
        service.submit_chunk(PLACE_ID, "services", [{"name": "Workspace", "class_name": "Workspace"}])
        service.submit_chunk(PLACE_ID, "tree", sample_tree[:1], chunk_index=0)
        service.submit_chunk(PLACE_ID, "tree", sample_tree[1:], chunk_index=1)
        service.submit_chunk(PLACE_ID, "scripts", [
            {"path": "ReplicatedStorage.Shop", "class_name": "ModuleScript", "source": SAMPLE_SOURCE},
        ])
        service.submit_chunk(PLACE_ID, "remotes", [{"path": "ReplicatedStorage.Remotes.Buy", "class_name": "RemoteEvent"}])

        [active] = service.list_active_scans()
        assert active.progress == "receiving remotes"

        manifest = service.finalize_scan(ScanCompleteRequest(**complete_request()))
        assert service.list_active_scans() == []
        assert service.target_exists(PLACE_ID)
        assert service.get_manifest(PLACE_ID).tree_hash == manifest.tree_hash
        assert service.list_scopes(PLACE_ID) == ["tree", "scripts", "remotes", "services"]
        assert [m.place_id for m in service.list_manifests()] == [PLACE_ID]

        tree = service.get_scope(PLACE_ID, "tree")
        assert tree == sample_tree

        events = _events(service)
        assert events.count("scan_chunk") == 5
        assert events[-1] == "scan_complete"

    def test_chunk_result_counts(self, service: ScannerService) -> None:
        first = service.submit_chunk(PLACE_ID, "tree", [make_node("A", "Part", "A"), make_node("B", "Part", "B")])
        second = service.submit_chunk(PLACE_ID, "tree", [make_node("C", "Part", "C")])
        assert first == {"stored": 2, "total": 2}
        assert second == {"stored": 1, "total": 3}

    def test_unknown_chunk_type(self, service: ScannerService) -> None:
        with pytest.raises(ValidationError) as excinfo:
            service.submit_chunk(PLACE_ID, "logs", [])
        assert excinfo.value.status == 400
        assert excinfo.value.message == "Unknown chunk type: logs"

    def test_cancel_keeps_files(self, service: ScannerService) -> None:
        service.submit_chunk(PLACE_ID, "tree", [make_node("A", "Part", "A")])
        assert service.cancel_scan(PLACE_ID) is True
        assert service.cancel_scan(PLACE_ID) is False
        assert service.get_scope(PLACE_ID, "tree") == [make_node("A", "Part", "A")]
        assert _events(service).count("scan_cancel") == 1


class TestMaintenance:
    def test_delete_target(self, service: ScannerService) -> None:
        service.finalize_scan(ScanCompleteRequest(**complete_request()))
        assert service.delete_target(PLACE_ID) is True
        assert service.target_exists(PLACE_ID) is False
        with pytest.raises(NotFoundError):
            service.get_manifest(PLACE_ID)
        assert "game_delete" in _events(service)

    def test_clear_scope(self, service: ScannerService) -> None:
        service.submit_chunk(PLACE_ID, "remotes", [{"path": "R", "class_name": "RemoteEvent"}])
        assert service.clear_scope(PLACE_ID, "remotes") is True
        with pytest.raises(NotFoundError):
            service.get_scope(PLACE_ID, "remotes", GameQuery())
        assert "scope_clear" in _events(service)

    def test_recent_events_limit(self, service: ScannerService) -> None:
        for n in range(5):
            service.submit_chunk(n + 1, "tree", [])
        events = service.recent_events(2)
        assert [e["placeId"] for e in events] == [4, 5]

    def test_audit_log_location(self, tmp_path) -> None:
        log = tmp_path / "elsewhere" / "events.jsonl"
        service = ScannerService(ScannerConfig(storage_dir=tmp_path / "storage", audit_log=log))
        service.submit_chunk(PLACE_ID, "tree", [])
        assert log.exists()


class TestPlaceIds:
    def test_negative_place_id_rejected(self, service: ScannerService) -> None:
        with pytest.raises(ValidationError):
            service.submit_chunk(-5, "tree", [])
        assert service.list_active_scans() == []

    def test_negative_place_id_in_complete_request(self) -> None:
        with pytest.raises(PydanticValidationError):
            ScanCompleteRequest(**complete_request(place_id=-5))
