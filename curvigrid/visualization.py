"""
Visualization utilities for two-dimensional curvilinear grids.

Draws the warped lattice lines of a grid and overlays located points,
which helps when checking vertex data or chasing point-location failures.
"""

from typing import Optional

import matplotlib.pyplot as plt
import numpy as np


def _require_2d(grid):
    if grid.dimension != 2:
        raise ValueError(f"Plotting needs a 2-D grid, got a {grid.dimension}-D grid")


def plot_grid_2d(grid, ax: Optional[plt.Axes] = None, show_cell_centers: bool = False,
                 color: str = 'b', title: Optional[str] = None) -> plt.Axes:
    """
    Plot the lattice lines of a 2-D grid.

    Args:
        grid: CurvilinearGrid with dimension 2
        ax: Optional axes to plot on
        show_cell_centers: Also mark the centroid of every cell
        color: Color of the lattice lines
        title: Optional title for the plot

    Returns:
        The matplotlib Axes used for plotting
    """
    _require_2d(grid)
    if ax is None:
        _, ax = plt.subplots(figsize=(8, 8))

    points = grid.storage.positions.reshape(grid.grid_size + (2,))

    # Lines of constant index along each axis
    for i in range(points.shape[0]):
        ax.plot(points[i, :, 0], points[i, :, 1], color=color, linewidth=0.8)
    for j in range(points.shape[1]):
        ax.plot(points[:, j, 0], points[:, j, 1], color=color, linewidth=0.8)

    if show_cell_centers:
        cells = np.indices(grid.cell_size).reshape(2, -1).T
        centers = np.array([grid.cell_center(cell) for cell in cells])
        ax.scatter(centers[:, 0], centers[:, 1], c='gray', s=6, marker='+')

    ax.set_xlabel('X')
    ax.set_ylabel('Y')
    ax.set_aspect('equal')
    if title:
        ax.set_title(title)
    return ax


def plot_located_points(grid, points: np.ndarray, inside: np.ndarray,
                        ax: Optional[plt.Axes] = None) -> plt.Axes:
    """
    Overlay query points on a 2-D grid plot, green inside the domain and red outside.

    Args:
        grid: CurvilinearGrid with dimension 2
        points: Query points of shape [M, 2]
        inside: Boolean flags of shape [M], e.g. from Locator.locate_many
        ax: Optional axes; a new grid plot is drawn when None
    """
    _require_2d(grid)
    if ax is None:
        ax = plot_grid_2d(grid)

    points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    inside = np.asarray(inside, dtype=bool).reshape(-1)
    if points.shape[0] != inside.shape[0]:
        raise ValueError(f"Got {points.shape[0]} points but {inside.shape[0]} inside flags")

    ax.scatter(points[inside, 0], points[inside, 1], c='g', s=12, label='inside')
    ax.scatter(points[~inside, 0], points[~inside, 1], c='r', s=12, label='outside')
    ax.legend()
    return ax
