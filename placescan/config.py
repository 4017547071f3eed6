from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

ENV_PREFIX = "PLACESCAN_"
DEFAULT_MAX_BODY_BYTES = 16 * 1024 * 1024


@dataclass
class ScannerConfig:
    storage_dir: Path = Path("./storage")
    secret: Optional[str] = None
    host: str = "127.0.0.1"
    port: int = 3111
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES
    strict_reads: bool = False
    audit_log: Optional[Path] = None
    events_limit: int = 200

    @property
    def audit_log_path(self) -> Path:
        if self.audit_log is not None:
            return Path(self.audit_log)
        return Path(self.storage_dir) / "scan_events.log"


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _coerce(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in ("storage_dir", "audit_log"):
        return Path(str(value))
    if name in ("port", "max_body_bytes", "events_limit"):
        return int(value)
    if name == "strict_reads":
        return _parse_bool(value)
    if name == "secret":
        secret = str(value)
        return secret or None
    return str(value)


def _apply(config: ScannerConfig, raw: Mapping[str, Any]) -> ScannerConfig:
    known = {f.name for f in fields(ScannerConfig)}
    updates: Dict[str, Any] = {}
    for key, value in raw.items():
        if key in known:
            updates[key] = _coerce(key, value)
    return replace(config, **updates)


# Keep parsing straightforward so configs stay human-editable.
def load_config(path: str | Path, base: Optional[ScannerConfig] = None) -> ScannerConfig:
    data = json.loads(Path(path).read_text())
    if not isinstance(data, dict):
        raise ValueError(f"Config {path} must be a JSON object")
    return _apply(base or ScannerConfig(), data)


def from_env(environ: Optional[Mapping[str, str]] = None, base: Optional[ScannerConfig] = None) -> ScannerConfig:
    env = os.environ if environ is None else environ
    raw: Dict[str, Any] = {}
    for f in fields(ScannerConfig):
        key = ENV_PREFIX + f.name.upper()
        if key in env:
            raw[f.name] = env[key]
    return _apply(base or ScannerConfig(), raw)


def resolve_config(environ: Optional[Mapping[str, str]] = None) -> ScannerConfig:
    """JSON file named by PLACESCAN_CONFIG (if any), then PLACESCAN_* overrides."""
    env = os.environ if environ is None else environ
    config = ScannerConfig()
    path = env.get(ENV_PREFIX + "CONFIG")
    if path:
        config = load_config(path, base=config)
    return from_env(env, base=config)
