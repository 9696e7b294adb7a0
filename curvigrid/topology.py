"""
Cell topology for N-dimensional vertex lattices.

A cell is spanned by the 2^N vertices sharing a minimum-corner index.
Corners are numbered by bit mask: bit d of a corner number is set when the
corner sits at the far end of axis d. Offsets are measured in vertices
relative to the cell's base vertex in the flattened (C-order) lattice.
"""

from typing import List, Sequence, Tuple

import numpy as np


def vertex_strides(grid_size: Sequence[int]) -> Tuple[int, ...]:
    """
    Compute per-axis linear strides of a C-order vertex array.

    Args:
        grid_size: Number of vertices along each axis

    Returns:
        Tuple with the number of vertices skipped per unit step on each axis
    """
    strides = []
    step = 1
    for count in reversed(grid_size):
        strides.append(step)
        step *= int(count)
    return tuple(reversed(strides))


class CornerOffsetTable:
    """
    Storage offsets of the 2^N corners of a reference cell.

    Depends only on the lattice topology (its strides), never on vertex
    positions, so one table serves every cell of a grid for its lifetime.
    """

    def __init__(self, strides: Sequence[int]):
        self.strides = tuple(int(s) for s in strides)
        self.dimension = len(self.strides)
        self.num_corners = 1 << self.dimension

        corners = np.arange(self.num_corners)
        # bits[c, d] is 1 when corner c is at the far end of axis d
        self.bits = np.array(
            [(corners >> d) & 1 for d in range(self.dimension)], dtype=np.int64
        ).T.reshape(self.num_corners, self.dimension)
        self.offsets = self.bits @ np.array(self.strides, dtype=np.int64)

        # Corners with bit i clear; their bit-i partner is corner | (1 << i)
        self.near_corners: List[np.ndarray] = [
            corners[(corners >> i) & 1 == 0] for i in range(self.dimension)
        ]

    def __len__(self):
        return self.num_corners

    def __getitem__(self, corner: int) -> int:
        return int(self.offsets[corner])

    def __repr__(self):
        return f"<CornerOffsetTable: dimension={self.dimension}, offsets={self.offsets.tolist()}>"

    def corner_position(self, corner: int) -> np.ndarray:
        """Return the {0,1} local coordinate of a corner."""
        return self.bits[corner].astype(np.float64)
