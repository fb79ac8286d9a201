from __future__ import annotations

import io
import zipfile
import zlib
from pathlib import Path
from typing import Dict, Optional

import requests

from common.errors import ArchiveError
from common.logging_setup import get_logger


log = get_logger("mapbundle.archive")


def read_archive(payload: bytes) -> Dict[str, bytes]:
    """
    Decompress a zip payload into {member name: bytes}, in archive order.
    Directory entries are skipped. Raises ArchiveError on any read failure.
    """
    try:
        zf = zipfile.ZipFile(io.BytesIO(payload))
    except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError) as e:
        raise ArchiveError(f"cannot open archive: {e}") from e

    members: Dict[str, bytes] = {}
    with zf:
        for info in zf.infolist():
            if info.is_dir():
                continue
            try:
                members[info.filename] = zf.read(info)
            except (zipfile.BadZipFile, zlib.error, NotImplementedError, RuntimeError, EOFError) as e:
                # RuntimeError: encrypted member without password
                raise ArchiveError(f"cannot read member {info.filename!r}: {e}") from e
    log.debug("archive read", extra={"extra": {"members": list(members), "bytes": len(payload)}})
    return members


def load_source(source: str, timeout: float = 10.0, session: Optional[requests.Session] = None) -> bytes:
    """
    Fetch raw archive bytes from a local path or an http(s) URL.
    """
    if source.startswith(("http://", "https://")):
        http = session or requests
        try:
            r = http.get(source, timeout=timeout)
        except requests.RequestException as e:
            raise ArchiveError(f"download failed: {e}") from e
        if r.status_code != 200:
            raise ArchiveError(f"download failed with HTTP {r.status_code}: {r.text[:200]}")
        return r.content

    p = Path(source)
    try:
        return p.read_bytes()
    except OSError as e:
        raise ArchiveError(f"cannot read {p}: {e}") from e
