"""
Forward maps of a single grid cell.

Corner quantities are stacked along a leading axis of length 2^N, ordered
by corner bit mask (bit d set means the far end of axis d). Coordinates
are cell-local, nominally in [0, 1]^N.
"""

from typing import Optional

import numpy as np

from ...topology import CornerOffsetTable
from .rules import InterpolationRule, LinearRule

_LINEAR = LinearRule()


def evaluate(corners, local, rule: Optional[InterpolationRule] = None):
    """
    Multilinear interpolation by halving reduction.

    Starting from the 2^N corner quantities, each pass combines the pair
    (q[i], q[i + half]) with the weight of the current axis, from axis N-1
    down to axis 0, until one quantity remains.

    Args:
        corners: Corner quantities, numpy array or torch tensor of shape
            [2^N, ...]
        local: Cell-local coordinate with N components
        rule: Interpolation rule; defaults to the affine LinearRule

    Returns:
        The interpolated quantity with the shape of a single corner entry
    """
    if rule is None:
        rule = _LINEAR

    dimension = len(local)
    active = 1 << dimension
    if corners.shape[0] != active:
        raise ValueError(
            f"Expected {active} corner quantities for a {dimension}-D cell, got {corners.shape[0]}"
        )

    quantities = corners
    for axis in range(dimension - 1, -1, -1):
        half = active >> 1
        quantities = rule.interpolate(quantities[:half], quantities[half:active], local[axis])
        active = half
    return quantities[0]


def jacobian(corners: np.ndarray, local, table: CornerOffsetTable) -> np.ndarray:
    """
    Analytic Jacobian of the geometric forward map.

    Column i is the sum, over corner pairs differing only in bit i, of the
    edge vector (far - near) weighted by the product over the other axes j
    of local[j] where bit j of the near corner is set, else 1 - local[j].

    Args:
        corners: Corner positions of shape [2^N, M]
        local: Cell-local coordinate with N components
        table: Corner table of the grid, supplying the corner bit masks

    Returns:
        Matrix of shape [M, N] with d(position)/d(local) in its columns
    """
    corners = np.asarray(corners, dtype=np.float64)
    local = np.asarray(local, dtype=np.float64)
    dimension = table.dimension

    # Per-corner, per-axis linear weights
    factors = np.where(table.bits == 1, local, 1.0 - local)

    result = np.zeros((corners.shape[1], dimension), dtype=np.float64)
    for i in range(dimension):
        near = table.near_corners[i]
        far = near | (1 << i)
        edges = corners[far] - corners[near]

        weights = np.prod(np.delete(factors[near], i, axis=1), axis=1)
        result[:, i] = weights @ edges
    return result


def numerical_jacobian(corners, local, rule: Optional[InterpolationRule] = None,
                       step: float = 1.0e-6) -> np.ndarray:
    """Central-difference approximation of the geometric Jacobian."""
    local = np.asarray(local, dtype=np.float64)
    corners = np.asarray(corners, dtype=np.float64)
    dimension = local.shape[0]

    columns = []
    for i in range(dimension):
        delta = np.zeros(dimension)
        delta[i] = step
        forward = evaluate(corners, local + delta, rule)
        backward = evaluate(corners, local - delta, rule)
        columns.append((forward - backward) / (2.0 * step))
    return np.stack(columns, axis=-1)
