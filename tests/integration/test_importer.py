"""
Integration tests: whole archives through the import orchestrator
"""

import asyncio
import json
from unittest.mock import Mock, patch

import numpy as np
import pytest

from common.errors import ArchiveError, HeaderError
from common.types import OccupancyGrid, Pose, TopologyStatus
from mapbundle.archive import load_source, read_archive
from mapbundle.config import ImporterConfig
from mapbundle.exporter import export_bundle
from mapbundle.importer import find_raster_pair, import_map, import_map_async, main
from tests.helpers import SIDECAR, TOPOLOGY, make_pgm, make_zip


class TestImportMap:
    """import_map over synthetic bundles"""

    def test_full_bundle(self, bundle_bytes):
        """Test a complete bundle"""
        result = import_map(bundle_bytes)
        grid = result.occupancy_grid
        assert grid is not None
        assert (grid.width, grid.height) == (3, 2)
        assert grid.frame_id == "map"
        assert grid.resolution == pytest.approx(0.1)
        assert grid.origin.position == (-1.5, 2.0, 0.0)
        assert grid.origin.orientation == (0.0, 0.0, 0.0, 1.0)
        assert grid.data.tolist() == [0, 100, -1, 0, 100, -1]
        assert result.topology.status is TopologyStatus.OK
        assert result.topology_map == TOPOLOGY
        assert result.grid_error is None

    def test_flip_through_archive(self):
        """Test the vertical flip through an archive"""
        payload = make_zip({"m.pgm": make_pgm(2, 2, [254, 0, 205, 128]), "m.yaml": SIDECAR})
        grid = import_map(payload).occupancy_grid
        assert grid.rows()[0].tolist() == [-1, -1]
        assert grid.rows()[1].tolist() == [0, 100]

    def test_shape_for_many_sizes(self):
        """Test grid shape for several sizes"""
        rng = np.random.default_rng(3)
        for w, h in [(1, 1), (7, 5), (32, 9)]:
            px = rng.integers(20, 256, size=w * h, dtype=np.uint8)
            payload = make_zip({"m.pgm": make_pgm(w, h, px.tobytes()), "m.yaml": SIDECAR})
            grid = import_map(payload).occupancy_grid
            assert grid.data.shape == (w * h,)

    def test_truncated_pixels_do_not_raise(self):
        """Test truncated pixel data"""
        payload = make_zip({"m.pgm": make_pgm(4, 4, [254] * 10), "m.yaml": SIDECAR})
        grid = import_map(payload).occupancy_grid
        src = grid.rows()[::-1].reshape(-1)
        assert src[:10].tolist() == [0] * 10
        assert src[10:].tolist() == [-1] * 6

    def test_idempotent(self, bundle_bytes):
        """Test repeated imports are equal"""
        a = import_map(bundle_bytes)
        b = import_map(bundle_bytes)
        assert a == b
        assert a.occupancy_grid.data.tobytes() == b.occupancy_grid.data.tobytes()

    def test_topology_only(self):
        """Test a topology-only bundle"""
        result = import_map(make_zip({"site.topology": json.dumps(TOPOLOGY)}))
        assert result.occupancy_grid is None
        assert result.topology_map == TOPOLOGY
        assert result.grid_error is None

    def test_grid_only(self):
        """Test a bundle without topology"""
        result = import_map(make_zip({"m.pgm": make_pgm(1, 1, [0]), "m.yaml": SIDECAR}))
        assert result.occupancy_grid.data.tolist() == [100]
        assert result.topology_map is None
        assert result.topology.status is TopologyStatus.ABSENT

    def test_header_error_keeps_topology(self):
        """Test a bad header keeps the topology"""
        payload = make_zip({
            "m.pgm": b"P2\n2 2\n255\n" + bytes(4),
            "m.yaml": SIDECAR,
            "m.topology": json.dumps(TOPOLOGY),
        })
        result = import_map(payload)
        assert result.occupancy_grid is None
        assert "magic" in result.grid_error
        assert result.topology_map == TOPOLOGY

    def test_sidecar_with_byte_order_mark(self):
        """Test a sidecar with a byte order mark"""
        sidecar = "\ufeffresolution: 0.1\norigin: [-1.5, 2.0, 0.0]\n".encode("utf-8")
        payload = make_zip({"m.pgm": make_pgm(1, 1, [0]), "m.yaml": sidecar})
        grid = import_map(payload).occupancy_grid
        assert grid.resolution == pytest.approx(0.1)
        assert grid.origin.position == (-1.5, 2.0, 0.0)

    def test_header_error_strict(self):
        """Test strict mode raises on a bad header"""
        payload = make_zip({"m.pgm": b"P5\n2 2\n", "m.yaml": SIDECAR})
        with pytest.raises(HeaderError):
            import_map(payload, strict=True)

    def test_malformed_topology_keeps_grid(self):
        """Test a bad topology keeps the grid"""
        payload = make_zip({"m.pgm": make_pgm(1, 1, [254]), "m.yaml": SIDECAR, "m.topology": "{not json"})
        result = import_map(payload)
        assert result.occupancy_grid is not None
        assert result.topology_map is None
        assert result.topology.status is TopologyStatus.PARSE_ERROR

    def test_multiple_topology_members(self):
        """Test several topology members"""
        payload = make_zip({"a.topology": json.dumps(TOPOLOGY), "b.topology": json.dumps(TOPOLOGY)})
        result = import_map(payload)
        assert result.topology_map is None
        assert result.topology.status is TopologyStatus.ABSENT
        assert result.topology.error

    def test_raster_without_sidecar(self):
        """Test a raster without a sidecar"""
        result = import_map(make_zip({"m.pgm": make_pgm(1, 1, [0]), "other.yaml": SIDECAR}))
        assert result.occupancy_grid is None
        assert result.grid_error is None

    def test_first_pair_wins(self):
        """Test the first raster pair is used"""
        payload = make_zip({
            "a.pgm": make_pgm(1, 1, [0]),
            "a.yaml": "resolution: 0.1\n",
            "b.pgm": make_pgm(2, 1, [254, 254]),
            "b.yaml": "resolution: 0.2\n",
        })
        grid = import_map(payload).occupancy_grid
        assert (grid.width, grid.resolution) == (1, 0.1)

    def test_nested_member_names(self):
        """Test members inside folders"""
        payload = make_zip({"maps/": b"", "maps/office.pgm": make_pgm(1, 1, [0]), "maps/office.yaml": SIDECAR})
        assert find_raster_pair(read_archive(payload), ImporterConfig()) == ("maps/office.pgm", "maps/office.yaml")
        assert import_map(payload).occupancy_grid is not None

    def test_custom_config(self):
        """Test a custom importer config"""
        cfg = ImporterConfig(frame_id="world", default_resolution=0.2)
        payload = make_zip({"m.pgm": make_pgm(1, 1, [0]), "m.yaml": "origin: [1, 1, 0]\n"})
        grid = import_map(payload, cfg).occupancy_grid
        assert grid.frame_id == "world"
        assert grid.resolution == 0.2

    def test_not_an_archive(self):
        """Test a payload that is not a zip"""
        with pytest.raises(ArchiveError):
            import_map(b"definitely not a zip")

    def test_exported_bundle_imports_back(self):
        """Test an exported bundle imports back"""
        grid = OccupancyGrid(
            frame_id="map",
            resolution=0.05,
            width=3,
            height=2,
            origin=Pose(position=(-2.0, 1.0, 0.0)),
            data=np.array([0, 100, -1, -1, 0, 100], dtype=np.int8),
        )
        result = import_map(export_bundle(grid, TOPOLOGY, "office"))
        assert result.occupancy_grid == grid
        assert result.topology_map == TOPOLOGY


class TestImportMapAsync:
    """Test the threaded async import"""

    def test_concurrent_imports(self, bundle_bytes):
        """Test concurrent async imports"""
        async def run():
            return await asyncio.gather(import_map_async(bundle_bytes), import_map_async(bundle_bytes))

        a, b = asyncio.run(run())
        assert a == b
        assert a.occupancy_grid is not None

    def test_archive_error_propagates(self):
        """Test archive errors propagate"""
        with pytest.raises(ArchiveError):
            asyncio.run(import_map_async(b"nope"))


class TestLoadSource:
    """Test reading bundles from disk and URLs"""

    def test_local_file(self, tmp_path, bundle_bytes):
        """Test reading a local file"""
        p = tmp_path / "bundle.zip"
        p.write_bytes(bundle_bytes)
        assert load_source(str(p)) == bundle_bytes

    def test_missing_file(self, tmp_path):
        """Test a missing file"""
        with pytest.raises(ArchiveError):
            load_source(str(tmp_path / "missing.zip"))

    @patch("requests.get")
    def test_url(self, mock_get, bundle_bytes):
        """Test downloading a bundle"""
        mock_response = Mock()
        mock_response.status_code = 200
        mock_response.content = bundle_bytes
        mock_get.return_value = mock_response

        assert load_source("https://example.com/office.zip") == bundle_bytes

    @patch("requests.get")
    def test_url_failure(self, mock_get):
        """Test a failed download"""
        mock_response = Mock()
        mock_response.status_code = 404
        mock_response.text = "Not Found"
        mock_get.return_value = mock_response

        with pytest.raises(ArchiveError, match="404"):
            load_source("https://example.com/missing.zip")


class TestCli:
    """Test the mapbundle-import command line"""

    def test_writes_json(self, tmp_path, bundle_bytes):
        """Test the result is written as JSON"""
        src = tmp_path / "bundle.zip"
        src.write_bytes(bundle_bytes)
        out = tmp_path / "out" / "result.json"

        assert main([str(src), "--out", str(out), "--config", str(tmp_path / "none.yaml")]) == 0
        d = json.loads(out.read_text())
        assert d["occupancy_grid"]["info"]["width"] == 3
        assert d["topology_status"] == "ok"

    def test_bad_archive_exit_code(self, tmp_path):
        """Test the exit code for a bad archive"""
        src = tmp_path / "bad.zip"
        src.write_bytes(b"garbage")
        assert main([str(src)]) == 2

    def test_strict_header_exit_code(self, tmp_path):
        """Test the exit code with --strict"""
        src = tmp_path / "bad_header.zip"
        src.write_bytes(make_zip({"m.pgm": b"P6\n1 1\n255\n\x00", "m.yaml": SIDECAR}))
        assert main([str(src)]) == 0
        assert main([str(src), "--strict"]) == 2
