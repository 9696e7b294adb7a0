"""
Point location in a curvilinear grid.

A Locator is a cursor bound to one grid. ``locate`` inverts the geometric
forward map with Newton-Raphson iteration, stepping into neighbouring
cells whenever the iterate leaves the current one, and keeps the cell it
ends in so the next nearby query can resume from there (warm start).

Coordinate Convention:
- Cell indices are the multi-index of the cell's minimum-corner vertex
- Local coordinates are in [0, 1]^N inside a cell; outside that range they
  extrapolate past a cell face
"""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional, Tuple

import numpy as np

from .config import LocatorConfig
from .core.interpolation import evaluate as evaluate_multilinear
from .core.interpolation import jacobian as multilinear_jacobian
from .geometry import squared_norm
from .errors import (
    DegenerateJacobianError,
    GridNotFinalizedError,
    LocatorStateError,
    NonConvergenceError,
    OutOfDomainError,
)

if TYPE_CHECKING:
    from .grid import CurvilinearGrid

logger = logging.getLogger(__name__)


class LocatorState(Enum):
    """Lifecycle states of a locator."""
    UNBOUND = 0      # No grid
    INVALID = 1      # Bound to a grid, no cell fixed yet
    TRACKING = 2     # Has a current cell and local coordinate


class Locator:
    """
    Stateful point-location cursor for a CurvilinearGrid.

    Several locators may share one grid. Each owns its current cell and
    local coordinate, so a single locator must not be used from two
    threads at once.
    """

    def __init__(self, grid: Optional['CurvilinearGrid'] = None,
                 config: Optional[LocatorConfig] = None):
        """
        Initialize a locator.

        Args:
            grid: Grid to bind to; the locator stays UNBOUND when None
            config: Numerical settings; defaults to LocatorConfig()
        """
        self.config = config if config is not None else LocatorConfig()
        self.grid: Optional['CurvilinearGrid'] = None
        self.state = LocatorState.UNBOUND

        self._cell: Optional[np.ndarray] = None
        self._local: Optional[np.ndarray] = None
        self.iterations = 0
        self.converged = False

        if grid is not None:
            self.bind(grid)

    def __repr__(self):
        if self.state is LocatorState.TRACKING:
            return (f"<Locator: cell={self.cell_index}, "
                    f"local={self._local.tolist()}, inside={self.inside}>")
        return f"<Locator: {self.state.name}>"

    @property
    def tolerance(self) -> float:
        return self.config.tolerance

    @property
    def cell_index(self) -> Optional[Tuple[int, ...]]:
        if self._cell is None:
            return None
        return tuple(int(i) for i in self._cell)

    @property
    def local_coord(self) -> Optional[np.ndarray]:
        if self._local is None:
            return None
        return self._local.copy()

    @property
    def inside(self) -> bool:
        """Whether the current local coordinate lies within [0, 1]^N."""
        if self._local is None:
            return False
        return bool(np.all((self._local >= 0.0) & (self._local <= 1.0)))

    @property
    def base_address(self) -> int:
        """Flat storage index of the current cell's base vertex."""
        if self._cell is None:
            raise LocatorStateError("Locator has no current cell")
        return self.grid.storage.address_of(self._cell)

    def bind(self, grid: 'CurvilinearGrid') -> None:
        """Bind to a grid, discarding any tracked cell."""
        self.grid = grid
        self.reset()

    def reset(self) -> None:
        """Forget the tracked cell; the next locate performs a cold start."""
        self._cell = None
        self._local = None
        self.iterations = 0
        self.converged = False
        self.state = LocatorState.UNBOUND if self.grid is None else LocatorState.INVALID

    def _cold_start(self, point: np.ndarray) -> None:
        index = self.grid.cell_center_index
        if index is None or not self.grid.is_finalized:
            raise GridNotFinalizedError(
                "Cell-center index is missing or stale; call finalize_grid() first"
            )
        self._cell = np.array(index.closest_to(point), dtype=np.int64)
        self._local = np.full(self.grid.dimension, 0.5)
        self.state = LocatorState.TRACKING

    def _step_cells(self) -> None:
        """Move the current cell until the local coordinate is in [0, 1] or the domain edge is hit."""
        max_cell = self.grid.cell_size
        start = self._cell.copy()
        for axis in range(self.grid.dimension):
            while self._local[axis] < 0.0 and self._cell[axis] > 0:
                self._cell[axis] -= 1
                self._local[axis] += 1.0
            while self._local[axis] > 1.0 and self._cell[axis] < max_cell[axis] - 1:
                self._cell[axis] += 1
                self._local[axis] -= 1.0

        if logger.isEnabledFor(logging.DEBUG) and not np.array_equal(start, self._cell):
            logger.debug(f"Stepped from cell {tuple(start.tolist())} to {self.cell_index}")

    def locate(self, point, warm_start: bool = True) -> bool:
        """
        Find the cell and local coordinate of a world-space point.

        Args:
            point: World-space point with N components
            warm_start: Resume from the currently tracked cell when one
                exists; otherwise start from the nearest cell center

        Returns:
            True when the point lies inside the grid domain. False when the
            iteration converged to a local coordinate outside [0, 1]^N; the
            locator is then left at the nearest boundary cell. Coordinates
            within the tolerance of an outer face are clamped onto it.

        Raises:
            NonConvergenceError: the iteration cap was exceeded
            DegenerateJacobianError: the Jacobian became singular
        """
        if self.grid is None:
            raise LocatorStateError("Locator is not bound to a grid")

        point = self.grid.as_point(point)
        if not warm_start or self.state is not LocatorState.TRACKING:
            self._cold_start(point)

        table = self.grid.corner_table
        positions = self.grid.storage.positions
        tolerance_squared = self.config.tolerance_squared
        debug = logger.isEnabledFor(logging.DEBUG)

        self.converged = False
        self.iterations = 0
        while True:
            base = self.grid.storage.address_of(self._cell)
            corners = positions[base + table.offsets]

            residual = evaluate_multilinear(corners, self._local) - point
            residual_norm = squared_norm(residual)
            if debug:
                logger.debug(f"Iteration {self.iterations}: cell={self.cell_index}, "
                             f"local={self._local.tolist()}, residual^2={residual_norm:.3e}")
            if residual_norm < tolerance_squared:
                self.converged = True
                break

            if self.iterations >= self.config.max_iterations:
                logger.warning(f"Point location for {point.tolist()} did not converge "
                               f"after {self.iterations} iterations")
                raise NonConvergenceError(point, self.iterations, float(np.sqrt(residual_norm)))

            jac = multilinear_jacobian(corners, self._local, table)
            step = self._solve(jac, residual)
            self._local -= step
            self.iterations += 1
            self._step_cells()

        return self._snap_to_domain(corners)

    def _snap_to_domain(self, corners: np.ndarray) -> bool:
        """
        Decide whether the converged coordinate lies in the domain.

        The converged coordinate is only accurate to the tolerance, so points
        on the outer faces can land a hair outside [0, 1]. Components within
        the local-space image of twice the tolerance are clamped onto the face.
        """
        if self.inside:
            return True

        jac = multilinear_jacobian(corners, self._local, self.grid.corner_table)
        smallest = float(np.linalg.svd(jac, compute_uv=False)[-1])
        if not smallest > 0.0:
            return False

        slack = 2.0 * self.config.tolerance / smallest
        if np.all((self._local >= -slack) & (self._local <= 1.0 + slack)):
            self._local = np.clip(self._local, 0.0, 1.0)
            return True
        return False

    def _solve(self, jac: np.ndarray, residual: np.ndarray) -> np.ndarray:
        try:
            condition = float(np.linalg.cond(jac))
            if not np.isfinite(condition) or condition > self.config.singular_threshold:
                raise DegenerateJacobianError(self._cell, self._local.copy(), condition)
            return np.linalg.solve(jac, residual)
        except np.linalg.LinAlgError as e:
            raise DegenerateJacobianError(self._cell, self._local.copy()) from e

    def locate_many(self, points, warm_start: bool = True):
        """
        Locate a sequence of points, carrying the warm start from one to the next.

        Args:
            points: Array of shape [M, N]
            warm_start: Whether the first point may resume from the current cell

        Returns:
            Tuple of (cells [M, N] int, local coordinates [M, N], inside [M] bool)
        """
        if self.grid is None:
            raise LocatorStateError("Locator is not bound to a grid")

        points = np.asarray(points, dtype=np.float64)
        if self.grid.dimension == 1 and points.ndim == 1:
            points = points[:, np.newaxis]

        count = points.shape[0]
        cells = np.zeros((count, self.grid.dimension), dtype=np.int64)
        locals_ = np.zeros((count, self.grid.dimension), dtype=np.float64)
        inside = np.zeros(count, dtype=bool)

        for i, point in enumerate(points):
            inside[i] = self.locate(point, warm_start=warm_start or i > 0)
            cells[i] = self._cell
            locals_[i] = self._local
        return cells, locals_, inside

    def evaluate(self, point=None, warm_start: bool = True):
        """
        Interpolate the grid value at the current local coordinate.

        When ``point`` is given this is the fused form: locate the point
        first and raise OutOfDomainError if it lies outside the domain.
        Without a point the value is evaluated unchecked, which
        extrapolates after a locate that returned False.
        """
        if point is not None:
            return self.evaluate_at(point, warm_start)

        if self.state is not LocatorState.TRACKING:
            raise LocatorStateError("Locator has no located cell; call locate() first")
        return self.grid.interpolate_value(self._cell, self._local)

    def evaluate_at(self, point, warm_start: bool = True):
        """Locate a point and return its interpolated value; raises OutOfDomainError outside the domain."""
        if not self.locate(point, warm_start):
            logger.warning(f"Point {np.asarray(point).tolist()} is outside the grid domain")
            raise OutOfDomainError(point, self._cell, self._local.copy())
        return self.grid.interpolate_value(self._cell, self._local)
