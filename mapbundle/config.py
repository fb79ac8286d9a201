from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict

import yaml

from common.logging_setup import get_logger


log = get_logger("mapbundle.config")

DEFAULT_CONFIG_PATH = "config/params.yaml"


@dataclass(frozen=True)
class ImporterConfig:
    frame_id: str = "map"
    header_window: int = 1024
    default_resolution: float = 0.05
    raster_ext: str = ".pgm"
    metadata_ext: str = ".yaml"
    topology_ext: str = ".topology"

    def __post_init__(self) -> None:
        if self.header_window <= 0:
            raise ValueError("header_window must be > 0")
        if self.default_resolution <= 0:
            raise ValueError("default_resolution must be > 0")

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ImporterConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(d) - known)
        if unknown:
            log.warning("ignoring unknown importer keys", extra={"extra": {"keys": unknown}})
        return cls(**{k: v for k, v in d.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    max_upload_mb: float = 64.0

    @property
    def max_upload_bytes(self) -> int:
        return int(self.max_upload_mb * 1024 * 1024)


def _load_yaml(path: str) -> Dict:
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def load_params(path: str = DEFAULT_CONFIG_PATH) -> Dict:
    """Raw parameter tree; built-in defaults when the file does not exist."""
    if not Path(path).exists():
        return {
            "importer": ImporterConfig().to_dict(),
            "server": asdict(ServerConfig()),
        }
    return _load_yaml(path)


def load_config(path: str = DEFAULT_CONFIG_PATH) -> ImporterConfig:
    return ImporterConfig.from_dict(load_params(path).get("importer") or {})


def load_server_config(path: str = DEFAULT_CONFIG_PATH) -> ServerConfig:
    s = load_params(path).get("server") or {}
    return ServerConfig(
        host=str(s.get("host", ServerConfig.host)),
        port=int(s.get("port", ServerConfig.port)),
        max_upload_mb=float(s.get("max_upload_mb", ServerConfig.max_upload_mb)),
    )
