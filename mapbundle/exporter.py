from __future__ import annotations

import io
import json
import re
import zipfile
from typing import Any, Optional

import numpy as np

from common.logging_setup import get_logger
from common.types import OCC_UNKNOWN, OccupancyGrid
from mapbundle.pixels import FREE_THRESH, OCCUPIED_THRESH


log = get_logger("mapbundle.exporter")

PIX_FREE = 254
PIX_OCCUPIED = 0
PIX_UNKNOWN = 205

# characters not allowed in zip member names or download filenames
_UNSAFE_NAME_RE = re.compile(r'[\\/:*?"<>|\x00-\x1f\x7f]+')


def safe_map_name(name: Optional[str], fallback: str = "map") -> str:
    """Basename usable for zip members and download filenames; keeps non-ASCII text."""
    cleaned = _UNSAFE_NAME_RE.sub("_", str(name or "")).strip(" ._")
    return cleaned or fallback


def grid_to_pixels(grid: OccupancyGrid) -> np.ndarray:
    """Occupancy values -> raster samples, top raster row first."""
    values = grid.rows()[::-1].reshape(-1).astype(np.int16)
    pixels = np.full(values.shape, PIX_UNKNOWN, dtype=np.uint8)
    free = (values >= 0) & (values <= FREE_THRESH * 100)
    occupied = values >= OCCUPIED_THRESH * 100
    pixels[free] = PIX_FREE
    pixels[occupied] = PIX_OCCUPIED
    pixels[values == OCC_UNKNOWN] = PIX_UNKNOWN
    return pixels


def generate_pgm(grid: OccupancyGrid) -> bytes:
    header = f"P5\n# CREATOR: map_saver.cpp {grid.resolution:.3f} m/pix\n{grid.width} {grid.height}\n255\n"
    return header.encode("ascii") + grid_to_pixels(grid).tobytes()


def generate_yaml(grid: OccupancyGrid, map_name: str) -> str:
    x, y, z = grid.origin.position
    return (
        f"image: ./{map_name}.pgm\n"
        f"resolution: {grid.resolution:.6f}\n"
        f"origin: [{x:.6f}, {y:.6f}, {z:.6f}]\n"
        "negate: 0\n"
        f"occupied_thresh: {OCCUPIED_THRESH}\n"
        f"free_thresh: {FREE_THRESH}\n"
        "mode: trinary\n"
    )


def _has_points(topology: Any) -> bool:
    return isinstance(topology, dict) and isinstance(topology.get("points"), list) and len(topology["points"]) > 0


def export_bundle(grid: Optional[OccupancyGrid], topology: Any, map_name: str) -> bytes:
    """
    Zip a grid and/or topology into a bundle `import_map` can read back.
    A topology without points is left out.
    """
    map_name = safe_map_name(map_name)
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        if grid is not None:
            zf.writestr(f"{map_name}.pgm", generate_pgm(grid))
            zf.writestr(f"{map_name}.yaml", generate_yaml(grid, map_name))
        if _has_points(topology):
            zf.writestr(f"{map_name}.topology", json.dumps(topology, indent=2))
        members = zf.namelist()
    log.info("map bundle exported", extra={"extra": {"map_name": map_name, "members": members}})
    return buf.getvalue()
