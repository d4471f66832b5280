"""2-D vector value type used for positions, velocities and centroids."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def delta(self, other: Point) -> Point:
        """Vector from this point to ``other`` (``other - self``)."""
        return Point(other.x - self.x, other.y - self.y)

    def mag2(self) -> float:
        """Squared magnitude."""
        return self.x * self.x + self.y * self.y

    def angle(self) -> float:
        """Heading in degrees, -180..180, measured with atan2(y, x)."""
        return math.degrees(math.atan2(self.y, self.x))

    def distance(self, other: Point) -> float:
        """Euclidean distance to ``other``."""
        return math.hypot(other.x - self.x, other.y - self.y)

    def __add__(self, other: Point) -> Point:
        return Point(self.x + other.x, self.y + other.y)

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y], dtype=np.float64)

    @classmethod
    def from_array(cls, arr: np.ndarray) -> Point:
        return cls(float(arr[0]), float(arr[1]))


def vector_sum(points: list[Point]) -> Point:
    """Component-wise sum of a list of vectors."""
    return Point(sum(p.x for p in points), sum(p.y for p in points))
