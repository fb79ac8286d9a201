from __future__ import annotations

import time
from typing import Tuple


Stamp = Tuple[int, int]


def stamp_now() -> Stamp:
    """Wall-clock time as a ROS-style (sec, nsec) pair."""
    ns = time.time_ns()
    return (ns // 1_000_000_000, ns % 1_000_000_000)


def timer_ms(func):
    """
    Decorator that returns (result, elapsed_ms) for benchmarking small functions.
    """
    def wrapper(*args, **kwargs):
        t0 = time.perf_counter()
        out = func(*args, **kwargs)
        dt_ms = (time.perf_counter() - t0) * 1e3
        return out, dt_ms
    return wrapper
