from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

from common.errors import ArchiveError, HeaderError
from common.logging_setup import get_logger, setup_logging
from common.types import ImportResult, OccupancyGrid, Pose, TopologyOutcome
from common.utils import Stamp, stamp_now, timer_ms
from mapbundle.archive import load_source, read_archive
from mapbundle.config import DEFAULT_CONFIG_PATH, ImporterConfig, load_config
from mapbundle.pgm_header import tokenize_header
from mapbundle.pixels import decode_raster
from mapbundle.sidecar import extract_metadata
from mapbundle.topology import extract_topology


log = get_logger("mapbundle.importer")


def find_raster_pair(members: Mapping[str, bytes], cfg: ImporterConfig) -> Optional[Tuple[str, str]]:
    """
    First (raster, sidecar) pair in archive order, matched by identical base
    name. Further pairs are logged and ignored.
    """
    found: Optional[Tuple[str, str]] = None
    for name in members:
        if not name.endswith(cfg.raster_ext):
            continue
        sidecar = name[: -len(cfg.raster_ext)] + cfg.metadata_ext
        if sidecar not in members:
            log.warning("raster has no sidecar", extra={"extra": {"raster": name, "expected": sidecar}})
            continue
        if found is None:
            found = (name, sidecar)
        else:
            log.warning("ignoring extra raster pair", extra={"extra": {"raster": name, "using": found[0]}})
    return found


def find_topology(members: Mapping[str, bytes], cfg: ImporterConfig) -> TopologyOutcome:
    names: List[str] = [n for n in members if n.endswith(cfg.topology_ext)]
    if not names:
        return TopologyOutcome.absent()
    if len(names) > 1:
        log.warning("multiple topology members, none used", extra={"extra": {"members": names}})
        return TopologyOutcome.absent(f"{len(names)} topology members found; expected exactly one")
    return extract_topology(members[names[0]])


def build_grid(
    raster: bytes,
    sidecar_text: str,
    cfg: Optional[ImporterConfig] = None,
    stamp: Optional[Stamp] = None,
) -> OccupancyGrid:
    """
    Header -> pixels -> metadata for one raster/sidecar pair.
    Raises HeaderError when the raster header is unusable.
    """
    cfg = cfg or ImporterConfig()
    header = tokenize_header(raster, window=cfg.header_window)
    if header.max_val > 255:
        log.warning("max value above 255; samples are still read one byte each", extra={"extra": {"max_val": header.max_val}})
    data = decode_raster(raster, header.data_offset, (header.width, header.height))
    meta = extract_metadata(sidecar_text, default_resolution=cfg.default_resolution)
    return OccupancyGrid(
        frame_id=cfg.frame_id,
        resolution=meta.resolution,
        width=header.width,
        height=header.height,
        origin=Pose(position=meta.origin),
        data=data,
        stamp=stamp or stamp_now(),
    )


def import_members(
    members: Mapping[str, bytes],
    cfg: Optional[ImporterConfig] = None,
    strict: bool = False,
) -> ImportResult:
    """
    Assemble an ImportResult from already-decompressed archive members.

    A HeaderError drops the grid (recorded in `grid_error`) without stopping
    topology extraction, unless `strict` is set, in which case it is raised
    after topology has been looked at.
    """
    cfg = cfg or ImporterConfig()
    grid: Optional[OccupancyGrid] = None
    grid_error: Optional[HeaderError] = None

    pair = find_raster_pair(members, cfg)
    if pair is not None:
        raster_name, sidecar_name = pair
        try:
            grid = build_grid(
                members[raster_name],
                members[sidecar_name].decode("utf-8-sig", errors="replace"),
                cfg,
            )
        except HeaderError as e:
            log.error("raster header rejected", extra={"extra": {"raster": raster_name, "error": str(e)}})
            grid_error = e

    topology = find_topology(members, cfg)
    if grid_error is not None and strict:
        raise grid_error

    return ImportResult(
        occupancy_grid=grid,
        topology_map=topology.value,
        topology=topology,
        grid_error=str(grid_error) if grid_error is not None else None,
    )


@timer_ms
def _timed_import(payload: bytes, cfg: ImporterConfig, strict: bool) -> ImportResult:
    return import_members(read_archive(payload), cfg, strict)


def import_map(payload: bytes, cfg: Optional[ImporterConfig] = None, strict: bool = False) -> ImportResult:
    """
    Decode a map bundle archive into an ImportResult.

    Raises ArchiveError when the payload cannot be read, and HeaderError only
    in `strict` mode.
    """
    cfg = cfg or ImporterConfig()
    result, dt_ms = _timed_import(payload, cfg, strict)
    grid = result.occupancy_grid
    log.info(
        "map bundle imported",
        extra={"extra": {
            "grid": None if grid is None else f"{grid.width}x{grid.height}@{grid.resolution}",
            "topology": result.topology.status.value,
            "grid_error": result.grid_error,
            "elapsed_ms": round(dt_ms, 2),
        }},
    )
    return result


async def import_map_async(
    payload: bytes,
    cfg: Optional[ImporterConfig] = None,
    strict: bool = False,
) -> ImportResult:
    """import_map on a worker thread; concurrent calls share no state."""
    return await asyncio.to_thread(import_map, payload, cfg, strict)


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Import a map bundle (.pgm + .yaml [+ .topology]) archive")
    ap.add_argument("source", help="Path or http(s) URL of the zip bundle")
    ap.add_argument("--config", default=DEFAULT_CONFIG_PATH)
    ap.add_argument("--out", default=None, help="Write the result as JSON to this path")
    ap.add_argument("--strict", action="store_true", help="Fail when the raster header is rejected")
    ap.add_argument("--log-level", default=None)
    args = ap.parse_args(argv)

    setup_logging(args.log_level)
    cfg = load_config(args.config)

    try:
        result = import_map(load_source(args.source), cfg, strict=args.strict)
    except (ArchiveError, HeaderError) as e:
        log.error("import failed", extra={"extra": {"source": args.source, "error": str(e)}})
        return 2

    if args.out:
        out = Path(args.out)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(result.to_dict()))
        log.info("result written", extra={"extra": {"path": str(out)}})
    return 0


if __name__ == "__main__":
    sys.exit(main())
