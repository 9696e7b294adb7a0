"""Vertex storage for a vertex-centered curvilinear grid."""

from typing import Any, Optional, Sequence, Tuple

import numpy as np

from .topology import vertex_strides


class LatticeStorage:
    """
    N-dimensional array of vertex records.

    Positions are kept as one float64 array of shape [num_vertices, N] in
    C order; values as one array (numpy or torch) of shape
    [num_vertices, *value_shape]. A vertex record is addressed by its flat
    index, which is the dot product of its multi-index with the strides.
    """

    def __init__(self, grid_size: Sequence[int]):
        """
        Initialize empty storage.

        Args:
            grid_size: Number of vertices along each axis (each at least 2)
        """
        self.grid_size = tuple(int(s) for s in grid_size)
        if len(self.grid_size) == 0:
            raise ValueError("Grid must have at least one dimension")
        if any(s < 2 for s in self.grid_size):
            raise ValueError(f"Every grid axis needs at least 2 vertices, got {self.grid_size}")

        self.dimension = len(self.grid_size)
        self.strides = vertex_strides(self.grid_size)
        self.num_vertices = int(np.prod(self.grid_size))

        self.positions = np.zeros((self.num_vertices, self.dimension), dtype=np.float64)
        self.values: Optional[Any] = None

    def __repr__(self):
        return f"<{self.__class__.__name__}: size={self.grid_size}, {self.num_vertices} vertices>"

    def address_of(self, multi_index: Sequence[int]) -> int:
        """Return the flat index of the vertex at a multi-index."""
        if len(multi_index) != self.dimension:
            raise ValueError(
                f"Expected a {self.dimension}-component index, got {tuple(multi_index)}"
            )
        address = 0
        for axis, (i, count) in enumerate(zip(multi_index, self.grid_size)):
            if not 0 <= i < count:
                raise IndexError(f"Index {tuple(multi_index)} out of range for grid {self.grid_size}")
            address += int(i) * self.strides[axis]
        return address

    def stride_of(self, axis: int) -> int:
        return self.strides[axis]

    def element_count(self) -> int:
        return self.num_vertices

    def raw_positions(self) -> np.ndarray:
        return self.positions

    def raw_values(self):
        return self.values

    def _reshape_per_vertex(self, array, trailing: Tuple[int, ...]):
        """Flatten the leading grid axes of an array to one vertex axis."""
        shape = tuple(array.shape)
        if shape[:self.dimension] == self.grid_size:
            rest = shape[self.dimension:]
        elif shape[:1] == (self.num_vertices,):
            rest = shape[1:]
        else:
            raise ValueError(
                f"Array of shape {shape} does not match grid size {self.grid_size}"
            )
        if trailing and rest != trailing:
            raise ValueError(f"Expected per-vertex shape {trailing}, got {rest}")
        return array.reshape((self.num_vertices,) + tuple(rest))

    def set_positions(self, positions) -> None:
        """
        Copy vertex positions into storage.

        Args:
            positions: Array of shape [*grid_size, N] or [num_vertices, N];
                for one-dimensional grids [num_vertices] is accepted too
        """
        positions = np.asarray(positions, dtype=np.float64)
        if self.dimension == 1 and positions.shape == (self.num_vertices,):
            positions = positions[:, np.newaxis]
        self.positions = np.array(
            self._reshape_per_vertex(positions, (self.dimension,)), dtype=np.float64
        )

    def set_values(self, values) -> None:
        """
        Copy vertex values into storage.

        Args:
            values: numpy array or torch tensor of shape [*grid_size, ...]
                or [num_vertices, ...]
        """
        if not hasattr(values, 'shape'):
            values = np.asarray(values)
        values = self._reshape_per_vertex(values, ())
        # Copy so later changes to the caller's array don't leak in
        self.values = values.clone() if hasattr(values, 'clone') else np.array(values)

    def get_position(self, multi_index: Sequence[int]) -> np.ndarray:
        return self.positions[self.address_of(multi_index)].copy()

    def set_position(self, multi_index: Sequence[int], position) -> None:
        position = np.asarray(position, dtype=np.float64).reshape(self.dimension)
        self.positions[self.address_of(multi_index)] = position

    def get_value(self, multi_index: Sequence[int]):
        if self.values is None:
            raise ValueError("Grid has no vertex values")
        return self.values[self.address_of(multi_index)]

    def set_value(self, multi_index: Sequence[int], value) -> None:
        if self.values is None:
            raise ValueError("Grid has no vertex values; use set_values() first")
        self.values[self.address_of(multi_index)] = value
