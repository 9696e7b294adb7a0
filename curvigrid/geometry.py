"""Bounding boxes and small vector helpers."""

import numpy as np


def squared_norm(vector: np.ndarray) -> float:
    """Squared Euclidean norm of a vector."""
    return float(np.dot(vector, vector))


class BoundingBox:
    """Axis-aligned bounding box in N dimensions."""

    def __init__(self, dimension: int = None, low=None, high=None):
        """
        Initialize with low and high points, or as an empty box.

        An empty box has low=+inf and high=-inf so the first added point
        defines it.
        """
        if low is not None and high is not None:
            self.low = np.array(low, dtype=np.float64)
            self.high = np.array(high, dtype=np.float64)
        elif dimension is not None:
            self.low = np.full(dimension, np.inf)
            self.high = np.full(dimension, -np.inf)
        else:
            raise ValueError("BoundingBox needs a dimension or both low and high corners")

    def __repr__(self):
        return f"BoundingBox(low={self.low.tolist()}, high={self.high.tolist()})"

    @property
    def dimension(self) -> int:
        return self.low.shape[0]

    def is_empty(self) -> bool:
        return bool(np.any(self.low > self.high))

    def add_point(self, point) -> 'BoundingBox':
        """Expand the box to include a point."""
        point = np.asarray(point, dtype=np.float64)
        self.low = np.minimum(self.low, point)
        self.high = np.maximum(self.high, point)
        return self

    def add_points(self, points) -> 'BoundingBox':
        """Expand the box to include every row of a [M, N] array."""
        points = np.asarray(points, dtype=np.float64)
        if points.shape[0] == 0:
            return self
        self.low = np.minimum(self.low, points.min(axis=0))
        self.high = np.maximum(self.high, points.max(axis=0))
        return self

    def contains(self, point) -> bool:
        point = np.asarray(point, dtype=np.float64)
        return bool(np.all(point >= self.low) and np.all(point <= self.high))

    def size(self) -> np.ndarray:
        return self.high - self.low

    def center(self) -> np.ndarray:
        return 0.5 * (self.low + self.high)
