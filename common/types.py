from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np

from common.utils import Stamp, stamp_now


OCC_UNKNOWN = -1
OCC_FREE = 0
OCC_OCCUPIED = 100

_IDENTITY_QUAT = (0.0, 0.0, 0.0, 1.0)


def _as_float_tuple(x: Sequence[float], n: int) -> Tuple[float, ...]:
    if len(x) != n:
        raise ValueError(f"expected {n} components, got {len(x)}")
    return tuple(float(v) for v in x)


@dataclass(frozen=True)
class Pose:
    """
    Position (x, y, z) in meters plus orientation quaternion (x, y, z, w).
    Orientation defaults to the identity rotation.
    """
    position: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    orientation: Tuple[float, float, float, float] = _IDENTITY_QUAT

    def __post_init__(self) -> None:
        object.__setattr__(self, "position", _as_float_tuple(self.position, 3))
        object.__setattr__(self, "orientation", _as_float_tuple(self.orientation, 4))

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        px, py, pz = self.position
        ox, oy, oz, ow = self.orientation
        return {
            "position": {"x": px, "y": py, "z": pz},
            "orientation": {"x": ox, "y": oy, "z": oz, "w": ow},
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Pose":
        p = d.get("position") or {}
        o = d.get("orientation") or {}
        return cls(
            position=(p.get("x", 0.0), p.get("y", 0.0), p.get("z", 0.0)),
            orientation=(o.get("x", 0.0), o.get("y", 0.0), o.get("z", 0.0), o.get("w", 1.0)),
        )


@dataclass(frozen=True, eq=False)
class OccupancyGrid:
    """
    A decoded map, shaped like nav_msgs/OccupancyGrid.

    Attributes:
        frame_id: reference frame label.
        resolution: meters per cell (> 0).
        width, height: cell counts (> 0).
        origin: pose of cell (0, 0).
        data: row-major int8 cells in {-1, 0, 100}; row 0 is the bottom (southmost) row.
        stamp: (sec, nsec) creation time; not part of equality.

    `data` is stored read-only; instances are immutable once built.
    """
    frame_id: str
    resolution: float
    width: int
    height: int
    origin: Pose
    data: np.ndarray = field(repr=False)
    stamp: Stamp = field(default_factory=stamp_now, compare=False)

    def __post_init__(self) -> None:
        if self.resolution <= 0:
            raise ValueError("resolution must be > 0")
        if self.width <= 0 or self.height <= 0:
            raise ValueError("width/height must be > 0")
        data = np.array(self.data, dtype=np.int8).reshape(-1)
        if data.size != self.width * self.height:
            raise ValueError(f"data length {data.size} != width*height {self.width * self.height}")
        data.setflags(write=False)
        object.__setattr__(self, "data", data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OccupancyGrid):
            return NotImplemented
        return (
            self.frame_id == other.frame_id
            and self.resolution == other.resolution
            and self.width == other.width
            and self.height == other.height
            and self.origin == other.origin
            and np.array_equal(self.data, other.data)
        )

    __hash__ = None  # type: ignore[assignment]

    def cell(self, x: int, y: int) -> int:
        """Value at column x, row y (y = 0 is the bottom row)."""
        return int(self.data[y * self.width + x])

    def rows(self) -> np.ndarray:
        """(height, width) view of the data, bottom row first."""
        return self.data.reshape(self.height, self.width)

    def to_ros_dict(self) -> Dict[str, Any]:
        sec, nsec = self.stamp
        return {
            "header": {"frame_id": self.frame_id, "stamp": {"sec": sec, "nsec": nsec}},
            "info": {
                "map_load_time": {"sec": sec, "nsec": nsec},
                "resolution": self.resolution,
                "width": self.width,
                "height": self.height,
                "origin": self.origin.to_dict(),
            },
            "data": self.data.tolist(),
        }

    @classmethod
    def from_ros_dict(cls, d: Dict[str, Any]) -> "OccupancyGrid":
        header = d.get("header") or {}
        info = d["info"]
        stamp = header.get("stamp") or {}
        return cls(
            frame_id=str(header.get("frame_id", "map")),
            resolution=float(info["resolution"]),
            width=int(info["width"]),
            height=int(info["height"]),
            origin=Pose.from_dict(info.get("origin") or {}),
            data=np.asarray(d["data"], dtype=np.int8),
            stamp=(int(stamp.get("sec", 0)), int(stamp.get("nsec", 0))) if stamp else stamp_now(),
        )


class TopologyStatus(str, Enum):
    OK = "ok"
    ABSENT = "absent"
    PARSE_ERROR = "parse_error"


@dataclass(frozen=True)
class TopologyOutcome:
    """Tagged result of topology extraction; `value` is set only when status is OK."""
    status: TopologyStatus
    value: Any = None
    error: Optional[str] = None

    @classmethod
    def absent(cls, reason: Optional[str] = None) -> "TopologyOutcome":
        return cls(TopologyStatus.ABSENT, None, reason)


@dataclass(frozen=True)
class ImportResult:
    """
    Output of one import call. The grid and topology are independent:
    either, both or neither may be present.

    Attributes:
        occupancy_grid: decoded grid, or None (no pair found, or header rejected).
        topology_map: parsed topology document, or None.
        topology: tagged outcome behind `topology_map`.
        grid_error: HeaderError message when the raster pair was dropped.
    """
    occupancy_grid: Optional[OccupancyGrid]
    topology_map: Any
    topology: TopologyOutcome = field(default_factory=TopologyOutcome.absent)
    grid_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "occupancy_grid": self.occupancy_grid.to_ros_dict() if self.occupancy_grid else None,
            "topology_map": self.topology_map,
            "topology_status": self.topology.status.value,
            "topology_error": self.topology.error,
            "grid_error": self.grid_error,
        }
