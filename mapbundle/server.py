"""
Map bundle HTTP API

- POST /maps/import : raw zip body -> ImportResult JSON
- POST /maps/export : {map_name, occupancy_grid, topology_map} -> zip bytes
- GET  /health
"""
from __future__ import annotations

from typing import Any, Dict, Optional
from urllib.parse import quote

import uvicorn
from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from common.errors import ArchiveError
from common.logging_setup import get_logger
from common.types import OccupancyGrid
from mapbundle.config import load_config, load_server_config
from mapbundle.exporter import export_bundle, safe_map_name
from mapbundle.importer import import_map_async


log = get_logger("mapbundle.server")

CFG = load_config()
SERVER_CFG = load_server_config()

app = FastAPI(title="Map Bundle API", version="1.0.0")

# Browser dashboards upload from another origin during development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _content_disposition(filename: str) -> str:
    """ASCII fallback plus RFC 5987 filename* so non-latin-1 names survive."""
    ascii_name = filename.encode("ascii", errors="replace").decode("ascii").replace("?", "_")
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename, safe='')}"


@app.get("/health")
def health():
    return {"status": "ok", "importer": CFG.to_dict(), "max_upload_mb": SERVER_CFG.max_upload_mb}


@app.post("/maps/import")
async def import_endpoint(request: Request):
    payload = await request.body()
    if len(payload) > SERVER_CFG.max_upload_bytes:
        return JSONResponse({"error": "payload_too_large", "bytes": len(payload)}, status_code=413)
    try:
        result = await import_map_async(payload, CFG)
    except ArchiveError as e:
        log.error("archive rejected", extra={"extra": {"error": str(e), "bytes": len(payload)}})
        return JSONResponse({"error": "archive_error", "detail": str(e)}, status_code=400)
    return result.to_dict()


@app.post("/maps/export")
def export_endpoint(body: Dict[str, Any] = Body(...)):
    map_name = safe_map_name(body.get("map_name"))
    grid: Optional[OccupancyGrid] = None
    if body.get("occupancy_grid") is not None:
        try:
            grid = OccupancyGrid.from_ros_dict(body["occupancy_grid"])
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            raise HTTPException(status_code=422, detail=f"invalid occupancy_grid: {e}")
    data = export_bundle(grid, body.get("topology_map"), map_name)
    headers = {"Content-Disposition": _content_disposition(f"{map_name}.zip")}
    return Response(content=data, media_type="application/zip", headers=headers)


# -------- local dev entrypoint --------
if __name__ == "__main__":
    uvicorn.run(app, host=SERVER_CFG.host, port=SERVER_CFG.port)
