"""
Map bundle import/export

Turns a zip bundle produced by standard map-saving tools into a ROS-style
occupancy grid, and back:

  <name>.pgm       binary grayscale raster (P5)
  <name>.yaml      sidecar with `resolution:` and `origin: [x, y, z]`
  <name>.topology  optional JSON topology graph

Entry points:
    python -m mapbundle.importer bundle.zip --out result.json
    python -m mapbundle.server
"""
from .importer import import_map, import_map_async
from .exporter import export_bundle

__all__ = ["import_map", "import_map_async", "export_bundle"]
