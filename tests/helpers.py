"""Builders for synthetic rasters and bundles used across the suite."""
import io
import zipfile


def make_pgm(width, height, pixels, comments=(), eol=b"\n", max_val=255):
    """Build a P5 raster with optional comment lines after the magic."""
    out = b"P5" + eol
    for c in comments:
        out += b"# " + c.encode("ascii") + eol
    out += f"{width} {height}".encode("ascii") + eol
    out += str(max_val).encode("ascii") + eol
    return out + bytes(pixels)


def make_zip(members):
    """members: {name: bytes | str} in the order they should appear."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, content in members.items():
            zf.writestr(name, content)
    return buf.getvalue()


SIDECAR = "image: ./office.pgm\nresolution: 0.1\norigin: [-1.5, 2.0, 0.0]\nnegate: 0\n"

TOPOLOGY = {
    "map_name": "office",
    "points": [{"name": "dock", "x": 1.0, "y": 2.0, "theta": 0.0, "type": 0}],
    "routes": [],
}
