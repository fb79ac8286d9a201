from __future__ import annotations

from typing import Tuple

import numpy as np

from common.logging_setup import get_logger
from common.types import OCC_FREE, OCC_OCCUPIED, OCC_UNKNOWN


log = get_logger("mapbundle.pixels")

# map_server trinary defaults, applied to v / 255.0
FREE_THRESH = 0.196
OCCUPIED_THRESH = 0.65


def classify_sample(v: int) -> int:
    """Occupancy value for one raster sample (0..255)."""
    if v == 254:
        return OCC_FREE
    if v == 0:
        return OCC_OCCUPIED
    if v == 205:
        return OCC_UNKNOWN
    ratio = v / 255.0
    if ratio < FREE_THRESH:
        return OCC_FREE
    if ratio > OCCUPIED_THRESH:
        return OCC_OCCUPIED
    return OCC_UNKNOWN


def _build_lut() -> np.ndarray:
    lut = np.array([classify_sample(v) for v in range(256)], dtype=np.int8)
    lut.setflags(write=False)
    return lut


SAMPLE_LUT = _build_lut()


def decode_pixels(pixels: bytes, width: int, height: int) -> np.ndarray:
    """
    Classify `width*height` single-byte samples into a row-major int8 grid.

    Output row y=0 is the last (bottom) raster row: dst[y*w + x] = src[(h-1-y)*w + x].
    Cells whose source index is past the end of `pixels` are unknown (-1).
    """
    n = width * height
    k = min(len(pixels), n)
    src = np.frombuffer(pixels, dtype=np.uint8, count=k) if k else np.empty(0, dtype=np.uint8)
    cells = np.full(n, OCC_UNKNOWN, dtype=np.int8)
    cells[: src.size] = SAMPLE_LUT[src]
    if src.size < n:
        log.warning(
            "truncated pixel payload",
            extra={"extra": {"expected": n, "available": int(src.size), "unknown_filled": n - int(src.size)}},
        )
    return np.flipud(cells.reshape(height, width)).reshape(-1).copy()


def decode_raster(buf: bytes, data_offset: int, shape: Tuple[int, int]) -> np.ndarray:
    """Decode the pixel region of a whole raster member; `shape` is (width, height)."""
    width, height = shape
    return decode_pixels(buf[data_offset:], width, height)
