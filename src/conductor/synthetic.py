"""Synthetic pointer paths for tests, demos and benchmarks.

A conductor's beat pattern is modelled as a closed polygon traced at
constant speed: every corner is one beat, so a square is 4/4 and a
triangle 3/4. Timing is exact (integer multiples of ``interval_ms``), so
tempo follows directly from ``side_samples * interval_ms``.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

import numpy as np

PathSample = tuple[float, float, float]  # (x, y, time_ms)


def polygon_path(
    corners: Sequence[tuple[float, float]],
    side_samples: int = 20,
    cycles: int = 4,
    interval_ms: float = 25.0,
    start_ms: float = 0.0,
    jitter: float = 0.0,
    rng: Optional[np.random.Generator] = None,
) -> list[PathSample]:
    """Trace ``corners`` in order, ``cycles`` times, at constant speed.

    Args:
        corners: Polygon vertices, visited in order and closed back to the first.
        side_samples: Samples per side; the corner itself ends each side.
        cycles: Full laps around the polygon.
        interval_ms: Time between consecutive samples.
        start_ms: Timestamp of the first sample (placed on ``corners[0]``).
        jitter: Standard deviation of Gaussian noise added to each coordinate.
        rng: Generator for the jitter.
    """
    if len(corners) < 2:
        raise ValueError("A path needs at least two corners")
    if side_samples < 1:
        raise ValueError(f"side_samples must be >= 1, got {side_samples}")

    pts = np.asarray(corners, dtype=np.float64)
    n = len(pts)
    out: list[PathSample] = [(float(pts[0, 0]), float(pts[0, 1]), float(start_ms))]
    t = float(start_ms)
    for _ in range(cycles):
        for i in range(n):
            a, b = pts[i], pts[(i + 1) % n]
            for step in range(1, side_samples + 1):
                t += interval_ms
                p = a + (b - a) * (step / side_samples)
                out.append((float(p[0]), float(p[1]), t))

    if jitter > 0:
        rng = rng if rng is not None else np.random.default_rng()
        noise = rng.normal(0.0, jitter, size=(len(out), 2))
        out = [(x + dx, y + dy, t) for (x, y, t), (dx, dy) in zip(out, noise)]
    return out


def square_path(size: float = 200.0, origin: tuple[float, float] = (100.0, 100.0), **kwargs) -> list[PathSample]:
    """Clockwise square (screen coordinates, y down): four beats per cycle."""
    x0, y0 = origin
    corners = [(x0, y0), (x0 + size, y0), (x0 + size, y0 + size), (x0, y0 + size)]
    return polygon_path(corners, **kwargs)


def triangle_path(size: float = 200.0, origin: tuple[float, float] = (100.0, 100.0), **kwargs) -> list[PathSample]:
    """Equilateral triangle: three beats per cycle."""
    x0, y0 = origin
    corners = [(x0, y0), (x0 + size, y0), (x0 + size / 2, y0 + size * math.sqrt(3) / 2)]
    return polygon_path(corners, **kwargs)


SHAPES = {
    "square": square_path,
    "triangle": triangle_path,
}


def expected_bpm(side_samples: int, interval_ms: float) -> float:
    """Tempo produced by a path whose corners are ``side_samples`` samples apart."""
    return float(math.floor(60_000 / (side_samples * interval_ms)))
