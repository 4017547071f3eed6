# Explicit exports keep the public surface predictable.
from .config import ScannerConfig, load_config, resolve_config
from .errors import (
    NotFoundError,
    ParseError,
    ScanError,
    SerializationError,
    StorageError,
    StorageIOError,
    ValidationError,
)
from .hasher import compute_tree_hash
from .models import GameManifest, GameQuery, ScanChunk, ScanCompleteRequest, ScriptOutline
from .outline import generate_outline
from .service import ScannerService

__version__ = "0.1.0"

__all__ = [
    "GameManifest",
    "GameQuery",
    "NotFoundError",
    "ParseError",
    "ScanChunk",
    "ScanCompleteRequest",
    "ScanError",
    "ScannerConfig",
    "ScannerService",
    "ScriptOutline",
    "SerializationError",
    "StorageError",
    "StorageIOError",
    "ValidationError",
    "compute_tree_hash",
    "generate_outline",
    "load_config",
    "resolve_config",
]
