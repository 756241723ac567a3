"""Bond disorder: which springs of the lattice are present."""

from __future__ import annotations

import numpy as np

BONDS_PER_NODE = 3


def generate_bond_stiffnesses(
    probability: float,
    modulus: float,
    rng: np.random.Generator,
    num_bonds: int = BONDS_PER_NODE,
) -> np.ndarray:
    """
    Stiffness of one node's forward bonds.

    Each bond independently gets ``modulus`` when a uniform [0, 1) draw falls
    below ``probability``, otherwise 0. Probabilities outside [0, 1]
    saturate to all-present or all-absent.
    """
    draws = rng.random(num_bonds)
    return np.where(draws < probability, float(modulus), 0.0)


def generate_stiffness_array(
    size: int,
    probability: float,
    modulus: float,
    rng: np.random.Generator,
) -> np.ndarray:
    """Stiffness of every forward bond of a ``size x size`` lattice, shape ``(size, size, 3)``."""
    draws = rng.random((size, size, BONDS_PER_NODE))
    return np.where(draws < probability, float(modulus), 0.0)


def intact_fraction(stiffness: np.ndarray, tol: float = 1e-15) -> float:
    """Fraction of bonds with non-zero stiffness."""
    stiffness = np.asarray(stiffness)
    if stiffness.size == 0:
        return 0.0
    return float(np.count_nonzero(np.abs(stiffness) > tol)) / stiffness.size
