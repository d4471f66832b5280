"""Unweighted k-means over small 2-D point sets.

Searches every cluster count from 2 to ``max_clusters`` and keeps the
clustering with the lowest error among those that leave no cluster empty.
Built for a handful of direction-change positions re-clustered on every
sample, not as a general purpose clustering library.

The error of a candidate is the sum of point-to-centroid distances scaled
by the candidate's k. The scaling decides which k wins; a mean distance
would select a different k.

Usage:
    clusterer = Clusterer(max_clusters=4, rng=np.random.default_rng(0))
    result = clusterer.cluster([ClusterItem(p, payload) for p, payload in data])
    if result:
        print(len(result.centroids), result.error)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

import numpy as np

from conductor.vector import Point

logger = logging.getLogger("conductor.clusterer")

# (k, lower, upper, points, rng) -> (k, 2) array of starting centroids
Initializer = Callable[[int, np.ndarray, np.ndarray, np.ndarray, np.random.Generator], np.ndarray]


@dataclass(frozen=True)
class ClusterItem:
    """A position to cluster and the datum it belongs to."""
    position: Point
    payload: Any = None


@dataclass
class ClusteringResult:
    """Outcome of one clustering pass."""
    error: float
    assignments: list[int]  # parallel to the clustered items
    centroids: list[Point]
    items: list[ClusterItem] = field(default_factory=list)
    iterations: int = 0

    @property
    def k(self) -> int:
        return len(self.centroids)

    def members(self, cluster_index: int) -> list[ClusterItem]:
        """Items assigned to ``cluster_index``, in input order."""
        return [item for item, a in zip(self.items, self.assignments) if a == cluster_index]

    def clusters(self) -> list[list[ClusterItem]]:
        return [self.members(i) for i in range(self.k)]

    def top_cluster(self) -> int:
        """Index of the centroid with the smallest y (first one on ties)."""
        ys = [c.y for c in self.centroids]
        return int(np.argmin(ys))


def uniform_box(
    k: int, lower: np.ndarray, upper: np.ndarray, points: np.ndarray, rng: np.random.Generator
) -> np.ndarray:
    """Draw k centroids uniformly inside the bounding box of the points."""
    return lower + rng.random((k, 2)) * (upper - lower)


def kmeans_plus_plus(
    k: int, lower: np.ndarray, upper: np.ndarray, points: np.ndarray, rng: np.random.Generator
) -> np.ndarray:
    """k-means++ seeding: spread the starting centroids over the data."""
    centroids = [points[rng.integers(len(points))]]
    for _ in range(1, k):
        d2 = np.min(
            np.sum((points[:, None, :] - np.array(centroids)[None, :, :]) ** 2, axis=2), axis=1
        )
        total = d2.sum()
        if total <= 0:
            # Fewer distinct points than k; fall back to the box
            centroids.append(lower + rng.random(2) * (upper - lower))
            continue
        centroids.append(points[rng.choice(len(points), p=d2 / total)])
    return np.array(centroids, dtype=np.float64)


INITIALIZERS: dict[str, Initializer] = {
    "uniform_box": uniform_box,
    "kmeans++": kmeans_plus_plus,
}


@dataclass
class _Candidate:
    error: float
    assignments: np.ndarray
    centroids: np.ndarray
    iterations: int


class Clusterer:
    """k-means search over k = 2..max_clusters.

    Args:
        max_clusters: Largest k to try (at least 2).
        restarts: Independent initializations per k; the best valid one
            represents that k.
        tolerance: A centroid moving less than this counts as not moved.
        max_iterations: Hard cap on Lloyd iterations per attempt.
        rng: Source of randomness for initialization.
        initializer: Strategy name from ``INITIALIZERS`` or a callable.
    """

    MIN_CLUSTERS = 2

    def __init__(
        self,
        max_clusters: int = 4,
        restarts: int = 10,
        tolerance: float = 1e-9,
        max_iterations: int = 100,
        rng: Optional[np.random.Generator] = None,
        initializer: str | Initializer = "uniform_box",
    ):
        if max_clusters < self.MIN_CLUSTERS:
            raise ValueError(f"max_clusters must be >= {self.MIN_CLUSTERS}, got {max_clusters}")
        if restarts < 1:
            raise ValueError(f"restarts must be >= 1, got {restarts}")
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")
        self.max_clusters = max_clusters
        self.restarts = restarts
        self.tolerance = tolerance
        self.max_iterations = max_iterations
        self.rng = rng if rng is not None else np.random.default_rng()
        if isinstance(initializer, str):
            if initializer not in INITIALIZERS:
                raise ValueError(
                    f"Unknown initializer '{initializer}' (expected one of {sorted(INITIALIZERS)})"
                )
            initializer = INITIALIZERS[initializer]
        self._initializer = initializer

    def cluster(self, items: Sequence[ClusterItem]) -> Optional[ClusteringResult]:
        """Cluster ``items`` by position. Returns None if nothing qualifies."""
        if len(items) < self.MIN_CLUSTERS:
            return None

        points = np.array([[it.position.x, it.position.y] for it in items], dtype=np.float64)
        lower = points.min(axis=0)
        upper = points.max(axis=0)

        best: Optional[_Candidate] = None
        for k in range(self.MIN_CLUSTERS, self.max_clusters + 1):
            for _ in range(self.restarts):
                candidate = self._kmeans(points, k, lower, upper)
                if candidate is None:
                    continue
                if best is None or candidate.error < best.error:
                    best = candidate

        if best is None:
            logger.debug("No clustering without empty clusters for %d points", len(points))
            return None

        return ClusteringResult(
            error=best.error,
            assignments=[int(a) for a in best.assignments],
            centroids=[Point.from_array(c) for c in best.centroids],
            items=list(items),
            iterations=best.iterations,
        )

    def _kmeans(
        self, points: np.ndarray, k: int, lower: np.ndarray, upper: np.ndarray
    ) -> Optional[_Candidate]:
        """One Lloyd run. Returns None if it ends with an empty cluster."""
        centroids = np.array(self._initializer(k, lower, upper, points, self.rng), dtype=np.float64)
        if centroids.shape != (k, 2):
            raise ValueError(f"Initializer returned shape {centroids.shape}, expected {(k, 2)}")

        assignments, distances = _assign(points, centroids)
        iterations = 0
        while iterations < self.max_iterations:
            iterations += 1
            counts = np.bincount(assignments, minlength=k)
            filled = counts > 0  # empty clusters stay where they are
            sums = np.column_stack([
                np.bincount(assignments, weights=points[:, 0], minlength=k),
                np.bincount(assignments, weights=points[:, 1], minlength=k),
            ])
            means = sums[filled] / counts[filled, None]
            shift = np.linalg.norm(means - centroids[filled], axis=1)
            moved = bool(np.any(shift > self.tolerance))
            centroids[filled] = means
            assignments, distances = _assign(points, centroids)
            if not moved:
                break
        else:
            logger.debug("k=%d stopped at iteration cap (%d)", k, self.max_iterations)

        counts = np.bincount(assignments, minlength=k)
        if np.any(counts == 0):
            return None

        error = float(np.sum(distances) * k)
        return _Candidate(error=error, assignments=assignments, centroids=centroids, iterations=iterations)


def _assign(points: np.ndarray, centroids: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Nearest centroid per point; argmin keeps the first minimum on ties."""
    dists = np.linalg.norm(points[:, None, :] - centroids[None, :, :], axis=2)
    assignments = np.argmin(dists, axis=1)
    return assignments, dists[np.arange(len(points)), assignments]
