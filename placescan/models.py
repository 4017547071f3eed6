from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import AwareDatetime, BaseModel, Field

SCOPE_TYPES = ("tree", "scripts", "remotes", "properties", "services")

# ----------------------------
# Stored records
# ----------------------------

class InstanceNode(BaseModel):
    name: str
    class_name: str
    path: str
    children: List["InstanceNode"] = Field(default_factory=list)

class ScriptOutline(BaseModel):
    functions: List[str] = Field(default_factory=list)
    requires: List[str] = Field(default_factory=list)
    services: List[str] = Field(default_factory=list)
    remote_accesses: List[str] = Field(default_factory=list)
    instance_refs: List[str] = Field(default_factory=list)
    string_constants: List[str] = Field(default_factory=list)
    top_level_vars: List[str] = Field(default_factory=list)
    line_count: int = 0

class ScriptEntry(BaseModel):
    path: str
    class_name: str
    enabled: Optional[bool] = None
    outline: Optional[ScriptOutline] = None
    decompiled: bool = False
    line_count: int = 0
    size: int = 0

class ScriptFull(BaseModel):
    path: str
    source: str

# Shapes the scanner sends for the remaining scopes. Payloads are stored
# verbatim; these exist for clients and tests.
class RemoteEntry(BaseModel):
    path: str
    class_name: str

class ServiceChild(BaseModel):
    name: str
    class_name: str

class ServiceEntry(BaseModel):
    name: str
    class_name: str
    child_count: int = 0
    children: List[ServiceChild] = Field(default_factory=list)

class PropertyEntry(BaseModel):
    path: str
    class_name: str
    properties: Dict[str, str] = Field(default_factory=dict)

class GameManifest(BaseModel):
    place_id: int = Field(ge=0)
    game_id: int
    place_version: int
    place_name: str
    creator_id: int
    creator_type: str
    job_id: str
    tree_hash: str
    scanned_at: AwareDatetime
    scan_duration_secs: float
    scopes: List[str] = Field(default_factory=list)
    instance_count: int = 0
    script_count: int = 0
    remote_count: int = 0
    executor_supports_decompile: bool = False

# ----------------------------
# Inputs
# ----------------------------

class ScanChunk(BaseModel):
    place_id: int = Field(ge=0)
    chunk_type: str
    chunk_index: Optional[int] = None
    service_name: Optional[str] = None
    data: Any = None

class ScanCompleteRequest(BaseModel):
    place_id: int = Field(ge=0)
    game_id: int
    place_version: int
    place_name: str
    creator_id: int
    creator_type: str
    job_id: str
    scopes: List[str] = Field(default_factory=list)
    scan_duration_secs: float = 0.0
    instance_count: int = 0
    script_count: int = 0
    remote_count: int = 0
    executor_supports_decompile: bool = False

class ScanCancelIn(BaseModel):
    place_id: Optional[int] = Field(default=None, ge=0)

class GameQuery(BaseModel):
    path: Optional[str] = None
    search: Optional[str] = None
    class_name: Optional[str] = Field(default=None, alias="class")
    include_source: bool = False
    max_depth: Optional[int] = Field(default=None, ge=0)

    model_config = {"populate_by_name": True}

    def has_filters(self) -> bool:
        return bool(self.path or self.search or self.class_name)

# ----------------------------
# In-memory state
# ----------------------------

class ScanSession(BaseModel):
    place_id: int
    status: str = "scanning"
    progress: str = ""
    started_at: datetime
