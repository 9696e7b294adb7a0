"""
Point location and interpolation on curvilinear grids.

This package answers two dual queries on a logically regular but
geometrically warped N-dimensional lattice of sample points: which cell
contains a world-space point and where inside it (point location), and
what the interpolated vertex value is at a cell-local coordinate.
"""

from .grid import CurvilinearGrid
from .locator import Locator, LocatorState
from .config import LocatorConfig, configure_logging
from .geometry import BoundingBox
from .errors import CurvigridError, OutOfDomainError, NonConvergenceError
from .errors import DegenerateJacobianError, GridNotFinalizedError, LocatorStateError
