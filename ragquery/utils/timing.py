"""
Wall-clock timer for pipeline stages.

Usage:
    with Timer() as t:
        records = await retriever.search(vector, top_k)
    ctx.stage_timings["retrieving"] = t.elapsed_ms
"""

from __future__ import annotations

import time
from typing import Any


class Timer:
    def __init__(self) -> None:
        self._start: float = 0.0
        self.elapsed_s: float = 0.0

    @property
    def elapsed_ms(self) -> float:
        return self.elapsed_s * 1000

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *_: Any) -> None:
        self.elapsed_s = time.perf_counter() - self._start
