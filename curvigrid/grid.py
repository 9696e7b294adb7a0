"""
Vertex-centered curvilinear grids.

This module contains the CurvilinearGrid class, a logically regular
N-dimensional lattice whose vertices carry arbitrary world-space positions
and attribute values, together with the construction and whole-grid
queries used by point location.

Lifecycle:
- Construct with a grid size, optionally with positions and values
- Positions and values can also be supplied later in separate passes
- finalize_grid() (re)builds the cell-center index; it runs automatically
  when positions are passed to the constructor or to set_positions()
- new_locator() hands out cursors for locate / evaluate queries
"""

import logging
from typing import Optional, Sequence, Tuple

import numpy as np
import torch

from .cell_index import CellCenterIndex
from .config import LocatorConfig
from .core.interpolation import InterpolationRule, default_rule_for
from .core.interpolation import evaluate as evaluate_multilinear
from .core.interpolation import jacobian as multilinear_jacobian
from .geometry import BoundingBox
from .lattice import LatticeStorage
from .locator import Locator
from .topology import CornerOffsetTable

logger = logging.getLogger(__name__)


class CurvilinearGrid:
    """
    An N-dimensional grid of sample points with warped cell geometry.

    Cells are hyper-rectangles in index space and arbitrary multilinear
    hexahedra (in 3-D) in world space. Values may be scalars, vectors or
    tensors; they are combined with a pluggable InterpolationRule.
    """

    def __init__(self, grid_size: Sequence[int], positions=None, values=None,
                 rule: Optional[InterpolationRule] = None):
        """
        Initialize a new grid.

        Args:
            grid_size: Number of vertices along each axis (each at least 2)
            positions: Optional vertex positions, shape [*grid_size, N]
            values: Optional vertex values, shape [*grid_size, ...]; numpy
                array or torch tensor
            rule: Value interpolation rule; chosen from the value type when None
        """
        self.storage = LatticeStorage(grid_size)
        self.corner_table = CornerOffsetTable(self.storage.strides)
        self.cell_center_index: Optional[CellCenterIndex] = None
        self._finalized = False
        self._explicit_rule = rule

        logger.info(f"Created {self.dimension}-D grid with size {self.grid_size}: "
                    f"{self.num_vertices} vertices, {self.num_cells} cells")

        if positions is not None:
            self.set_positions(positions)
        if values is not None:
            self.set_values(values)

    def __repr__(self):
        return (f"<{self.__class__.__name__}: size={self.grid_size}, "
                f"{self.num_cells} cells, finalized={self._finalized}>")

    @property
    def grid_size(self) -> Tuple[int, ...]:
        return self.storage.grid_size

    @property
    def dimension(self) -> int:
        return self.storage.dimension

    @property
    def cell_size(self) -> Tuple[int, ...]:
        """Number of cells along each axis."""
        return tuple(s - 1 for s in self.grid_size)

    @property
    def num_vertices(self) -> int:
        return self.storage.num_vertices

    @property
    def num_cells(self) -> int:
        return int(np.prod(self.cell_size))

    @property
    def is_finalized(self) -> bool:
        return self._finalized

    @property
    def has_values(self) -> bool:
        return self.storage.values is not None

    @property
    def rule(self) -> InterpolationRule:
        if self._explicit_rule is not None:
            return self._explicit_rule
        return default_rule_for(self.storage.values)

    def as_point(self, point) -> np.ndarray:
        """Convert a world-space point to a float array with N components."""
        point = np.atleast_1d(np.asarray(point, dtype=np.float64))
        if point.shape != (self.dimension,):
            raise ValueError(f"Expected a point with {self.dimension} components, got shape {point.shape}")
        return point

    def _check_cell(self, cell_index) -> np.ndarray:
        cell = np.asarray(cell_index, dtype=np.int64).reshape(-1)
        if cell.shape[0] != self.dimension:
            raise ValueError(f"Expected a {self.dimension}-component cell index, got {tuple(cell)}")
        if np.any(cell < 0) or np.any(cell >= np.array(self.cell_size)):
            raise IndexError(f"Cell {tuple(cell)} out of range for cell grid {self.cell_size}")
        return cell

    # Construction and mutation

    def set_positions(self, positions) -> None:
        """Copy all vertex positions and rebuild the cell-center index."""
        self.storage.set_positions(positions)
        self.finalize_grid()

    def set_values(self, values) -> None:
        """Copy all vertex values; the cell-center index is unaffected."""
        self.storage.set_values(values)

    def get_vertex_position(self, index: Sequence[int]) -> np.ndarray:
        return self.storage.get_position(index)

    def set_vertex_position(self, index: Sequence[int], position) -> None:
        """Move one vertex. The cell-center index becomes stale until finalize_grid()."""
        self.storage.set_position(index, position)
        self._finalized = False

    def get_vertex_value(self, index: Sequence[int]):
        return self.storage.get_value(index)

    def set_vertex_value(self, index: Sequence[int], value) -> None:
        self.storage.set_value(index, value)

    def finalize_grid(self) -> None:
        """(Re)build the cell-center index from the current vertex positions."""
        self.cell_center_index = CellCenterIndex().build(
            self.storage.positions, self.grid_size, self.corner_table
        )
        self._finalized = True
        logger.info(f"Finalized grid: indexed {self.num_cells} cell centers")

    # Per-cell queries

    def cell_corners(self, cell_index) -> np.ndarray:
        """Positions of the 2^N corners of a cell, in corner bit-mask order."""
        cell = self._check_cell(cell_index)
        base = self.storage.address_of(cell)
        return self.storage.positions[base + self.corner_table.offsets]

    def cell_values(self, cell_index):
        """Values at the 2^N corners of a cell, in corner bit-mask order."""
        if self.storage.values is None:
            raise ValueError("Grid has no vertex values")
        cell = self._check_cell(cell_index)
        base = self.storage.address_of(cell)
        offsets = base + self.corner_table.offsets
        if torch.is_tensor(self.storage.values):
            offsets = torch.as_tensor(offsets, device=self.storage.values.device)
        return self.storage.values[offsets]

    def cell_center(self, cell_index) -> np.ndarray:
        """Unweighted mean of the corner positions of a cell."""
        return self.cell_corners(cell_index).mean(axis=0)

    def map_to_world(self, cell_index, local) -> np.ndarray:
        """Geometric forward map: local coordinate in a cell to world position."""
        local = np.asarray(local, dtype=np.float64).reshape(self.dimension)
        return evaluate_multilinear(self.cell_corners(cell_index), local)

    def interpolate_value(self, cell_index, local):
        """Value forward map: local coordinate in a cell to interpolated value."""
        local = np.asarray(local, dtype=np.float64).reshape(self.dimension)
        return evaluate_multilinear(self.cell_values(cell_index), local, self.rule)

    def jacobian(self, cell_index, local) -> np.ndarray:
        """Jacobian of the geometric forward map of a cell."""
        local = np.asarray(local, dtype=np.float64).reshape(self.dimension)
        return multilinear_jacobian(self.cell_corners(cell_index), local, self.corner_table)

    # Whole-grid queries

    def domain_bounding_box(self) -> BoundingBox:
        """Axis-aligned bounding box of all vertex positions."""
        return BoundingBox(self.dimension).add_points(self.storage.positions)

    def new_locator(self, tolerance: Optional[float] = None,
                    config: Optional[LocatorConfig] = None) -> Locator:
        """
        Create a locator bound to this grid.

        Args:
            tolerance: Convergence tolerance on the world-space residual;
                overrides the tolerance in ``config``
            config: Numerical settings; defaults to LocatorConfig()
        """
        if config is None:
            config = LocatorConfig()
        if tolerance is not None:
            config = LocatorConfig(
                tolerance=tolerance,
                max_iterations=config.max_iterations,
                singular_threshold=config.singular_threshold,
            )
        return Locator(self, config)
