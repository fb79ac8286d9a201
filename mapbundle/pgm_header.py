"""
P5 (binary PGM) header tokenizer.

The header is scanned line by line as a small state machine:

    EXPECT_MAGIC -> EXPECT_DIMENSIONS -> EXPECT_MAXVAL

Blank lines and full-line `#` comments are skipped in every state. A line ends
at LF, CR or CRLF (one terminator). Only lines that are complete inside the
first `window` bytes are considered; if the max-value line is not reached the
header is rejected as truncated.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Tuple

from common.errors import HeaderError
from common.logging_setup import get_logger


log = get_logger("mapbundle.header")

PGM_MAGIC = "P5"
HEADER_WINDOW = 1024

_LF = 0x0A
_CR = 0x0D
_INT_RE = re.compile(r"[+-]?\d+")


class HeaderState(Enum):
    EXPECT_MAGIC = "magic"
    EXPECT_DIMENSIONS = "dimensions"
    EXPECT_MAXVAL = "maxval"


@dataclass(frozen=True)
class HeaderLine:
    text: str       # decoded and stripped
    start: int      # offset of first byte
    next: int       # offset just past the terminator


@dataclass(frozen=True)
class PgmHeader:
    width: int
    height: int
    max_val: int
    data_offset: int

    @property
    def cells(self) -> int:
        return self.width * self.height


def iter_header_lines(buf: bytes, window: int = HEADER_WINDOW) -> Iterator[HeaderLine]:
    """
    Yield the terminated lines that start and end inside buf[:window].
    A CR immediately followed by LF counts as one terminator, even when the LF
    sits just past the window.
    """
    limit = min(len(buf), window)
    start = 0
    i = 0
    while i < limit:
        b = buf[i]
        if b == _LF or b == _CR:
            nxt = i + 1
            if b == _CR and nxt < len(buf) and buf[nxt] == _LF:
                nxt += 1
            text = buf[start:i].decode("ascii", errors="replace").strip()
            yield HeaderLine(text=text, start=start, next=nxt)
            start = nxt
            i = nxt
        else:
            i += 1


def is_skippable(line: HeaderLine) -> bool:
    """Blank lines and full-line comments carry no header tokens."""
    return not line.text or line.text.startswith("#")


def accept_magic(line: HeaderLine, magic: str = PGM_MAGIC) -> None:
    if line.text != magic:
        raise HeaderError(f"expected magic {magic!r}, got {line.text[:32]!r}")


def accept_dimensions(line: HeaderLine) -> Optional[Tuple[int, int]]:
    """
    Return (width, height), or None when the line does not hold two integer
    tokens (the caller skips it). Non-positive integers are fatal.
    """
    parts = line.text.split()
    if len(parts) < 2 or not (_INT_RE.fullmatch(parts[0]) and _INT_RE.fullmatch(parts[1])):
        log.warning("skipping invalid dimensions line", extra={"extra": {"line": line.text[:64]}})
        return None
    width, height = int(parts[0]), int(parts[1])
    if width <= 0 or height <= 0:
        raise HeaderError(f"dimensions must be positive, got {width}x{height}")
    return width, height


def accept_maxval(line: HeaderLine) -> Optional[int]:
    """
    Return the max sample value from the leading digits of the line (`255abc`
    reads as 255), or None when it does not start with a number (the caller
    skips it). Negative values are fatal.
    """
    parts = line.text.split()
    m = _INT_RE.match(parts[0]) if parts else None
    if m is None:
        log.warning("skipping invalid max value line", extra={"extra": {"line": line.text[:64]}})
        return None
    max_val = int(m.group(0))
    if max_val < 0:
        raise HeaderError(f"max value must be non-negative, got {max_val}")
    return max_val


def skip_terminators(buf: bytes, offset: int) -> int:
    """Advance past any CR/LF bytes at `offset`."""
    n = len(buf)
    while offset < n and buf[offset] in (_LF, _CR):
        offset += 1
    return offset


def tokenize_header(buf: bytes, window: int = HEADER_WINDOW) -> PgmHeader:
    """
    Parse the P5 header at the start of `buf`.

    Returns a PgmHeader whose `data_offset` is the index of the first pixel
    byte. Raises HeaderError on a bad magic token, non-positive dimensions, a
    negative max value, or a header that does not end within `window` bytes.
    """
    state = HeaderState.EXPECT_MAGIC
    width = height = 0

    for line in iter_header_lines(buf, window):
        if is_skippable(line):
            continue
        log.debug("header line", extra={"extra": {"state": state.value, "line": line.text[:64]}})

        if state is HeaderState.EXPECT_MAGIC:
            accept_magic(line)
            state = HeaderState.EXPECT_DIMENSIONS
        elif state is HeaderState.EXPECT_DIMENSIONS:
            dims = accept_dimensions(line)
            if dims is not None:
                width, height = dims
                state = HeaderState.EXPECT_MAXVAL
        elif state is HeaderState.EXPECT_MAXVAL:
            max_val = accept_maxval(line)
            if max_val is not None:
                header = PgmHeader(
                    width=width,
                    height=height,
                    max_val=max_val,
                    data_offset=skip_terminators(buf, line.next),
                )
                log.info(
                    "pgm header parsed",
                    extra={"extra": {
                        "width": width,
                        "height": height,
                        "max_val": max_val,
                        "data_offset": header.data_offset,
                        "total_len": len(buf),
                        "expected_pixels": header.cells,
                    }},
                )
                return header

    raise HeaderError(
        f"truncated header: stopped in state {state.value!r} within the first {min(len(buf), window)} bytes"
    )
