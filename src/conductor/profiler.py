"""Stage timing for ``AnalysisEngine.add_sample``.

The engine wraps each of its pipeline stages in ``profiler.stage(name)``;
the outer ``total`` stage spans the whole sample, so every other stage can
be reported as a share of it. Durations are kept in a rolling window so a
long session reflects current behavior rather than warm-up.
"""

from __future__ import annotations

import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

import numpy as np

TOTAL = "total"


@dataclass(frozen=True)
class StageTiming:
    """Rolling-window timing of one stage, in milliseconds."""
    name: str
    calls: int
    avg_ms: float
    p95_ms: float
    max_ms: float
    share: Optional[float]  # fraction of the average total, None for ``total`` itself

    def to_dict(self) -> dict:
        return {
            "calls": self.calls,
            "avg_ms": round(self.avg_ms, 3),
            "p95_ms": round(self.p95_ms, 3),
            "max_ms": round(self.max_ms, 3),
            "share_pct": None if self.share is None else round(self.share * 100, 1),
        }


class PipelineProfiler:
    """Per-stage timing for the sample pipeline.

    Usage:
        profiler = PipelineProfiler(window=500)
        with profiler.stage("total"):
            with profiler.stage("clustering"):
                result = clusterer.cluster(items)
        for name, timing in profiler.summary().items():
            print(name, timing["avg_ms"], timing["share_pct"])
    """

    STAGES = ("history", "direction", "clustering", "estimation", TOTAL)

    def __init__(self, window: int = 120):
        self.window = window
        self._durations: dict[str, deque[float]] = {}
        self._calls: dict[str, int] = {}
        self.enabled = True

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        """Time the enclosed block under ``name``; a raising block still counts."""
        if not self.enabled:
            yield
            return
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self._record(name, (time.perf_counter() - t0) * 1000.0)

    def _record(self, name: str, elapsed_ms: float):
        if name not in self._durations:
            self._durations[name] = deque(maxlen=self.window)
            self._calls[name] = 0
        self._durations[name].append(elapsed_ms)
        self._calls[name] += 1

    def timing(self, name: str) -> Optional[StageTiming]:
        """Timing of ``name``, or None if it has not run since the last reset."""
        window = self._durations.get(name)
        if not window:
            return None
        durations = np.fromiter(window, dtype=np.float64)
        avg = float(durations.mean())

        share = None
        if name != TOTAL:
            total = self._durations.get(TOTAL)
            if total:
                total_avg = float(np.mean(total))
                share = avg / total_avg if total_avg > 0 else None

        return StageTiming(
            name=name,
            calls=self._calls[name],
            avg_ms=avg,
            p95_ms=float(np.percentile(durations, 95)),
            max_ms=float(durations.max()),
            share=share,
        )

    def summary(self) -> dict[str, dict]:
        """Timings of every stage that ran, pipeline stages first, as plain dicts."""
        order = [s for s in self.STAGES if s in self._durations]
        order += [s for s in self._durations if s not in self.STAGES]
        out = {}
        for name in order:
            timing = self.timing(name)
            if timing is not None:
                out[name] = timing.to_dict()
        return out

    def slowest_stage(self) -> Optional[str]:
        """Pipeline stage (excluding ``total``) with the highest average time."""
        timings = [self.timing(s) for s in self._durations if s != TOTAL]
        timings = [t for t in timings if t is not None]
        if not timings:
            return None
        return max(timings, key=lambda t: t.avg_ms).name

    def reset(self):
        self._durations.clear()
        self._calls.clear()
