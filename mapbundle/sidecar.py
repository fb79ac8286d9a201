from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from common.logging_setup import get_logger


log = get_logger("mapbundle.sidecar")

DEFAULT_RESOLUTION = 0.05
DEFAULT_ORIGIN = (0.0, 0.0, 0.0)

# Longest leading decimal literal, e.g. "0.05 # m/cell" -> "0.05"
_FLOAT_PREFIX_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass(frozen=True)
class MapMetadata:
    resolution: float = DEFAULT_RESOLUTION
    origin: Tuple[float, float, float] = DEFAULT_ORIGIN


def parse_float_prefix(text: str) -> Optional[float]:
    """Finite float at the start of `text` (after whitespace), else None."""
    m = _FLOAT_PREFIX_RE.match(text.strip())
    if not m:
        return None
    v = float(m.group(0))
    return v if math.isfinite(v) else None


def parse_bracket_literal(text: str) -> Optional[List[Optional[float]]]:
    """
    Parse the first `[a, b, ...]` literal in `text`.

    Returns one entry per comma-separated component (None where a component is
    not numeric), or None when there is no complete bracket pair.
    """
    lo = text.find("[")
    if lo < 0:
        return None
    hi = text.find("]", lo + 1)
    if hi < 0:
        return None
    body = text[lo + 1: hi]
    if not body.strip():
        return []
    return [parse_float_prefix(part) for part in body.split(",")]


def _origin_from_components(parts: List[Optional[float]]) -> Tuple[float, float, float]:
    vals = [(parts[i] if i < len(parts) and parts[i] is not None else 0.0) for i in range(3)]
    return (float(vals[0]), float(vals[1]), float(vals[2]))


def extract_metadata(text: str, default_resolution: float = DEFAULT_RESOLUTION) -> MapMetadata:
    """
    Pull `resolution:` and `origin: [x, y, z]` out of sidecar text.

    This is a line scan, not a YAML parse. It never raises: a missing field or
    an unparsable value falls back to the default (origin components fall back
    to 0 individually). A later line overrides an earlier one.
    """
    resolution: Optional[float] = None
    origin: Optional[Tuple[float, float, float]] = None

    if text.startswith("\ufeff"):
        text = text[1:]

    for raw in text.splitlines():
        line = raw.strip()
        if line.startswith("resolution:"):
            v = parse_float_prefix(line[len("resolution:"):])
            if v is not None and v > 0:
                resolution = v
            else:
                log.warning("unparsable resolution, using default", extra={"extra": {"line": line[:80]}})
        elif line.startswith("origin:"):
            parts = parse_bracket_literal(line[len("origin:"):])
            if parts is None:
                log.warning("origin is not a [x, y, z] literal, using default", extra={"extra": {"line": line[:80]}})
                continue
            if len(parts) < 3 or any(p is None for p in parts[:3]):
                log.warning("origin components missing or invalid, filling with 0", extra={"extra": {"line": line[:80]}})
            origin = _origin_from_components(parts)

    if resolution is None:
        log.warning("no usable resolution in sidecar", extra={"extra": {"default": default_resolution}})
        resolution = default_resolution
    if origin is None:
        log.warning("no usable origin in sidecar", extra={"extra": {"default": list(DEFAULT_ORIGIN)}})
        origin = DEFAULT_ORIGIN
    return MapMetadata(resolution=resolution, origin=origin)
