"""
Nearest cell-center search.

Supplies the cold-start guess for point location: the cell whose centroid
is closest to a query point. Backed by a scipy k-d tree.
"""

import logging
from typing import Optional, Sequence, Tuple

import numpy as np
from scipy.spatial import cKDTree

from .topology import CornerOffsetTable

logger = logging.getLogger(__name__)


class CellCenterIndex:
    """
    k-d tree over the centroids of all cells of a grid.

    Entries are written into a temporary build buffer obtained from
    ``build_from`` and become searchable after ``finalize_build``, which
    builds the tree and releases the buffer.
    """

    def __init__(self):
        self._tree: Optional[cKDTree] = None
        self._cells: Optional[np.ndarray] = None
        self._cell_size: Optional[Tuple[int, ...]] = None
        self._build_centroids: Optional[np.ndarray] = None
        self._build_cells: Optional[np.ndarray] = None

    def __len__(self):
        return 0 if self._cells is None else self._cells.shape[0]

    @property
    def is_built(self) -> bool:
        return self._tree is not None

    def build_from(self, count: int, dimension: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        Allocate the temporary build buffer.

        Returns:
            Writable (centroids [count, N], cells [count, N]) arrays
        """
        self._build_centroids = np.empty((count, dimension), dtype=np.float64)
        self._build_cells = np.empty((count, dimension), dtype=np.int64)
        return self._build_centroids, self._build_cells

    def finalize_build(self) -> None:
        """Build the search tree from the buffer and release the buffer."""
        if self._build_centroids is None:
            raise RuntimeError("finalize_build() called without build_from()")
        self._tree = cKDTree(self._build_centroids)
        self._cells = self._build_cells
        self._cell_size = tuple(int(c) for c in self._cells.max(axis=0) + 1)
        self._build_centroids = None
        self._build_cells = None

    def build(self, positions: np.ndarray, grid_size: Sequence[int],
              table: CornerOffsetTable) -> 'CellCenterIndex':
        """
        Index every cell of a lattice by its centroid.

        Args:
            positions: Vertex positions, shape [num_vertices, N], C order
            grid_size: Vertex counts per axis
            table: Corner offset table of the lattice

        Returns:
            self
        """
        cell_size = tuple(int(s) - 1 for s in grid_size)
        dimension = len(cell_size)

        # Every cell index in lexicographic order
        cells = np.indices(cell_size).reshape(dimension, -1).T
        centroids, cell_buffer = self.build_from(cells.shape[0], dimension)

        bases = cells @ np.array(table.strides, dtype=np.int64)
        corner_positions = positions[bases[:, np.newaxis] + table.offsets[np.newaxis, :]]
        centroids[:] = corner_positions.mean(axis=1)
        cell_buffer[:] = cells

        self.finalize_build()
        logger.debug(f"Indexed {cells.shape[0]} cell centers")
        return self

    def closest_to(self, point) -> Tuple[int, ...]:
        """Return the index of the cell whose centroid is nearest to a point."""
        if self._tree is None:
            raise RuntimeError("Cell-center index has not been built")
        _, nearest = self._tree.query(np.asarray(point, dtype=np.float64))
        return tuple(int(i) for i in self._cells[nearest])

    def closest_many(self, points) -> np.ndarray:
        """Vectorized ``closest_to`` for an array of points [M, N]; returns [M, N] cells."""
        if self._tree is None:
            raise RuntimeError("Cell-center index has not been built")
        _, nearest = self._tree.query(np.asarray(points, dtype=np.float64))
        return self._cells[nearest]

    def centroid_of(self, cell: Sequence[int]) -> np.ndarray:
        """Return the stored centroid of a cell."""
        if self._tree is None:
            raise RuntimeError("Cell-center index has not been built")
        flat = np.ravel_multi_index(tuple(int(c) for c in cell), self._cell_size)
        return np.array(self._tree.data[flat])
