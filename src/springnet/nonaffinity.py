"""
Non-affinity measures of a sheared network.

The positional measure compares each node with its affine prediction, the
rest lattice sheared by ``strain * (y_row - y_mid)``:

    Gamma = 1 / (N^2 * strain^2) * sum_i |r_i - r_i^aff|^2

The velocity measure compares node velocities over the last time step with the
affine shear flow ``strain_rate * (y_row - y_mid)`` along x and is left
unnormalized.
"""

from __future__ import annotations

import numpy as np

from .lattice import TriangularLattice
from .integrator import affine_velocity

STRAIN_EPS = 1e-15


def nonaffinity(
    lattice: TriangularLattice,
    positions: np.ndarray,
    strain: float,
    *,
    normalize: bool = True,
) -> float:
    """Squared deviation from the affine prediction; 0 when ``|strain| < 1e-15``."""
    if abs(strain) < STRAIN_EPS:
        return 0.0
    positions = np.asarray(positions, dtype=np.float64)
    if positions.shape != (2 * lattice.num_nodes,):
        raise ValueError(
            f"positions must have shape ({2 * lattice.num_nodes},), got {positions.shape}"
        )
    deviation = positions - lattice.affine_positions(strain)
    total = float(np.dot(deviation, deviation))
    if normalize:
        total /= lattice.num_nodes * strain * strain
    return total


def velocity_nonaffinity(
    lattice: TriangularLattice,
    delta: np.ndarray,
    dt: float,
    strain_rate: float,
) -> float:
    """Squared deviation of node velocities ``delta / dt`` from affine shear flow."""
    n = lattice.size
    velocity = np.asarray(delta, dtype=np.float64).reshape(n, n, 2) / dt
    dvx = velocity[:, :, 0] - affine_velocity(lattice, strain_rate)[:, None]
    dvy = velocity[:, :, 1]
    return float(np.sum(dvx * dvx) + np.sum(dvy * dvy))
