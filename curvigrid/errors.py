"""Exceptions raised by the curvilinear grid and its locators."""

from typing import Optional, Sequence


class CurvigridError(Exception):
    """Base class for all grid and locator errors."""


class OutOfDomainError(CurvigridError):
    """
    The located point lies outside the geometric domain of the grid.

    Raised by the fused evaluate operation when point location converges
    but the final local coordinate is outside [0, 1] on some axis. The
    locator stays positioned at the boundary cell.
    """

    def __init__(self, point, cell_index: Sequence[int], local_coord):
        self.point = point
        self.cell_index = tuple(int(i) for i in cell_index)
        self.local_coord = local_coord
        super().__init__(
            f"Point {point} is outside the grid domain "
            f"(cell {self.cell_index}, local coordinate {local_coord})"
        )


class NonConvergenceError(CurvigridError):
    """Newton-Raphson iteration did not converge within the iteration cap."""

    def __init__(self, point, iterations: int, residual: float):
        self.point = point
        self.iterations = iterations
        self.residual = residual
        super().__init__(
            f"Point location for {point} did not converge after {iterations} "
            f"iterations (residual {residual:.3e})"
        )


class DegenerateJacobianError(CurvigridError):
    """The Jacobian of the geometric forward map is singular or near-singular."""

    def __init__(self, cell_index: Sequence[int], local_coord, condition: Optional[float] = None):
        self.cell_index = tuple(int(i) for i in cell_index)
        self.local_coord = local_coord
        self.condition = condition
        if condition is None:
            detail = "singular"
        else:
            detail = f"condition number {condition:.3e}"
        super().__init__(
            f"Degenerate Jacobian in cell {self.cell_index} at local "
            f"coordinate {local_coord} ({detail})"
        )


class GridNotFinalizedError(CurvigridError):
    """The cell-center index is missing or stale; call finalize_grid()."""


class LocatorStateError(CurvigridError):
    """The locator is not in a state that allows the requested operation."""
