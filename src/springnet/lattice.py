"""
Triangular lattice geometry and periodic indexing.

Nodes sit on an ``N x N`` triangular lattice stored row-major in a flat buffer
of ``2 * N * N`` scalars (x, y interleaved). Node ``(row, col)`` rests at

    x = L * (col + row / 2),   y = L * sqrt(3) / 2 * row

Every node owns three "forward" bonds and sees three "backward" bonds owned by
its neighbours:

    direction 1 -> (row,     col + 1)      direction 4 -> (row,     col - 1)
    direction 2 -> (row + 1, col    )      direction 5 -> (row - 1, col    )
    direction 3 -> (row + 1, col - 1)      direction 6 -> (row - 1, col + 1)

The cell is periodic in both directions. Crossing the top (or bottom) boundary
also shifts the image horizontally by ``N * L / 2 + strain * H`` where ``H`` is
the cell height: a sheared, Lees-Edwards style periodic cell.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np
from numba import njit

SQRT3_2 = math.sqrt(3.0) / 2.0

FORWARD_DIRECTIONS = (1, 2, 3)
ALL_DIRECTIONS = (1, 2, 3, 4, 5, 6)


class BoundaryFlags(NamedTuple):
    """Which cell edges a node touches."""

    is_top: bool
    is_bottom: bool
    is_left: bool
    is_right: bool


class Neighbor(NamedTuple):
    """Wrapped neighbour index plus the image offset to add to its position."""

    row: int
    col: int
    xshift: float
    yshift: float


###############################################################################
# Kernels
###############################################################################


@njit(cache=True)
def node_index(n: int, row: int, col: int) -> int:
    """Flat node index of ``(row, col)``; both wrap modulo ``n``."""
    return (row % n) * n + (col % n)


@njit(cache=True)
def neighbor_shift(n: int, row: int, col: int, direction: int,
                   strain: float, rest_length: float):
    """
    Wrapped neighbour of ``(row, col)`` along ``direction`` (1..6).

    Returns ``(nrow, ncol, xshift, yshift)`` such that the neighbour's position
    plus the shift is the image bonded to ``(row, col)``.
    """
    width = n * rest_length
    height = n * rest_length * SQRT3_2
    top_shift = 0.5 * width + strain * height

    is_top = row == n - 1
    is_bottom = row == 0
    is_left = col == 0
    is_right = col == n - 1

    nrow = row
    ncol = col
    xshift = 0.0
    yshift = 0.0

    if direction == 1:
        ncol = col + 1
        if is_right:
            ncol = 0
            xshift += width
    elif direction == 2:
        nrow = row + 1
        if is_top:
            nrow = 0
            xshift += top_shift
            yshift += height
    elif direction == 3:
        nrow = row + 1
        ncol = col - 1
        if is_top:
            nrow = 0
            xshift += top_shift
            yshift += height
        if is_left:
            ncol = n - 1
            xshift -= width
    elif direction == 4:
        ncol = col - 1
        if is_left:
            ncol = n - 1
            xshift -= width
    elif direction == 5:
        nrow = row - 1
        if is_bottom:
            nrow = n - 1
            xshift -= top_shift
            yshift -= height
    elif direction == 6:
        nrow = row - 1
        ncol = col + 1
        if is_bottom:
            nrow = n - 1
            xshift -= top_shift
            yshift -= height
        if is_right:
            ncol = 0
            xshift += width

    return nrow, ncol, xshift, yshift


###############################################################################
# Geometry
###############################################################################


@dataclass(frozen=True)
class TriangularLattice:
    """Geometry of an ``size x size`` periodic triangular lattice."""

    size: int
    rest_length: float = 1.0

    def __post_init__(self) -> None:
        if self.size < 2:
            raise ValueError(f"lattice size must be at least 2, got {self.size}")
        if self.rest_length <= 0.0:
            raise ValueError(f"rest length must be positive, got {self.rest_length}")

    @property
    def num_nodes(self) -> int:
        return self.size * self.size

    @property
    def width(self) -> float:
        return self.size * self.rest_length

    @property
    def height(self) -> float:
        return self.size * self.rest_length * SQRT3_2

    @property
    def area(self) -> float:
        """Area of the periodic cell (independent of shear)."""
        return self.width * self.height

    def index(self, row: int, col: int) -> int:
        return node_index(self.size, row, col)

    def bond_index(self, row: int, col: int, direction: int) -> int:
        """Flat index of forward bond ``direction`` (1..3) in a raveled stiffness array."""
        if direction not in FORWARD_DIRECTIONS:
            raise ValueError(f"bond direction must be 1, 2 or 3, got {direction}")
        return self.index(row, col) * 3 + direction - 1

    def boundary_flags(self, row: int, col: int) -> BoundaryFlags:
        last = self.size - 1
        return BoundaryFlags(
            is_top=row == last,
            is_bottom=row == 0,
            is_left=col == 0,
            is_right=col == last,
        )

    def neighbor(self, row: int, col: int, direction: int, strain: float = 0.0) -> Neighbor:
        if direction not in ALL_DIRECTIONS:
            raise ValueError(f"direction must be in 1..6, got {direction}")
        nrow, ncol, xs, ys = neighbor_shift(
            self.size, row % self.size, col % self.size, direction,
            float(strain), float(self.rest_length),
        )
        return Neighbor(int(nrow), int(ncol), float(xs), float(ys))

    def row_heights(self) -> np.ndarray:
        """Rest y-coordinate of each row."""
        return np.arange(self.size, dtype=np.float64) * self.rest_length * SQRT3_2

    def mid_height(self) -> float:
        return 0.5 * (self.size - 1) * self.rest_length * SQRT3_2

    def rest_positions(self) -> np.ndarray:
        """Unstrained lattice as a flat ``(2 * N * N,)`` buffer."""
        rows, cols = np.meshgrid(
            np.arange(self.size, dtype=np.float64),
            np.arange(self.size, dtype=np.float64),
            indexing="ij",
        )
        pos = np.empty((self.size, self.size, 2), dtype=np.float64)
        pos[:, :, 0] = self.rest_length * (cols + 0.5 * rows)
        pos[:, :, 1] = self.rest_length * SQRT3_2 * rows
        return pos.reshape(-1)

    def affine_positions(self, strain: float) -> np.ndarray:
        """Rest lattice with the pure-shear displacement ``strain * (y - y_mid)``."""
        pos = self.rest_positions().reshape(self.size, self.size, 2)
        offset = strain * (self.row_heights() - self.mid_height())
        pos[:, :, 0] += offset[:, None]
        return pos.reshape(-1)

    def image_position(self, positions: np.ndarray, row: int, col: int,
                       direction: int, strain: float = 0.0) -> np.ndarray:
        """Position of the neighbour image bonded to ``(row, col)``."""
        nb = self.neighbor(row, col, direction, strain)
        k = self.index(nb.row, nb.col)
        return np.array(
            [positions[2 * k] + nb.xshift, positions[2 * k + 1] + nb.yshift]
        )


__all__ = [
    "ALL_DIRECTIONS",
    "BoundaryFlags",
    "FORWARD_DIRECTIONS",
    "Neighbor",
    "SQRT3_2",
    "TriangularLattice",
    "neighbor_shift",
    "node_index",
]
