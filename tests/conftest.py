"""Shared fixtures for the placescan tests."""

from pathlib import Path

import pytest

from placescan.audit import AuditLedger
from placescan.config import ScannerConfig
from placescan.service import ScannerService
from placescan.sessions import ScanSessions
from placescan.store import ScopeStore

PLACE_ID = 920587237

SAMPLE_SOURCE = """
local ReplicatedStorage = game:GetService("ReplicatedStorage")
local Players = game:GetService("Players")
local DataManager = require(ReplicatedStorage.Modules.DataManager)

local ShopHandler = {}
local MAX_ITEMS = 50

function ShopHandler.Init(player)
    print("init")
end

function ShopHandler.PurchaseItem(itemId, quantity)
    ReplicatedStorage.Remotes.PurchaseItem:FireServer(itemId, quantity)
end

local remote = ReplicatedStorage:FindFirstChild("01_server")
local gui = Players.LocalPlayer.PlayerGui:WaitForChild("MainGui")

return ShopHandler
"""


def make_node(name: str, class_name: str, path: str, children=None) -> dict:
    node = {"name": name, "class_name": class_name, "path": path}
    if children is not None:
        node["children"] = children
    return node


@pytest.fixture
def storage_dir(tmp_path: Path) -> Path:
    return tmp_path / "storage"


@pytest.fixture
def sessions() -> ScanSessions:
    return ScanSessions()


@pytest.fixture
def audit(storage_dir: Path) -> AuditLedger:
    return AuditLedger(storage_dir / "scan_events.log")


@pytest.fixture
def store(storage_dir: Path, sessions: ScanSessions, audit: AuditLedger) -> ScopeStore:
    return ScopeStore(storage_dir, sessions=sessions, audit=audit)


@pytest.fixture
def service(storage_dir: Path) -> ScannerService:
    return ScannerService(ScannerConfig(storage_dir=storage_dir))


@pytest.fixture
def sample_tree() -> list:
    return [
        make_node(
            "Workspace",
            "Workspace",
            "Workspace",
            [
                make_node(
                    "Map",
                    "Model",
                    "Workspace.Map",
                    [make_node("Spawn", "SpawnLocation", "Workspace.Map.Spawn")],
                ),
                make_node("Baseplate", "Part", "Workspace.Baseplate"),
            ],
        ),
        make_node(
            "ReplicatedStorage",
            "ReplicatedStorage",
            "ReplicatedStorage",
            [make_node("Remotes", "Folder", "ReplicatedStorage.Remotes")],
        ),
    ]


def complete_request(place_id: int = PLACE_ID, **overrides) -> dict:
    data = {
        "place_id": place_id,
        "game_id": 3317771874,
        "place_version": 1482,
        "place_name": "Pet Simulator",
        "creator_id": 5060810,
        "creator_type": "Group",
        "job_id": "7d3c0a5e-0c7e-4b8e-9a51-2f1b0f9d3e11",
        "scopes": ["services", "tree", "scripts", "remotes"],
        "scan_duration_secs": 12.5,
        "instance_count": 5,
        "script_count": 1,
        "remote_count": 1,
        "executor_supports_decompile": True,
    }
    data.update(overrides)
    return data
