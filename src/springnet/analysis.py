"""Shear-modulus estimates from stress, energy and oscillatory runs."""

from __future__ import annotations

from typing import NamedTuple

import numpy as np

from .lattice import TriangularLattice


class ViscoelasticModuli(NamedTuple):
    storage: float
    loss: float
    offset: float
    residual: float


def modulus_from_stress(stress: float, strain: float) -> float:
    if abs(strain) < 1e-15:
        raise ValueError("strain must be non-zero to estimate a modulus")
    return stress / strain


def modulus_from_energy(lattice: TriangularLattice, energy: float, strain: float) -> float:
    """``G = 2 E / (A strain^2)`` for a cell of area ``A``."""
    if abs(strain) < 1e-15:
        raise ValueError("strain must be non-zero to estimate a modulus")
    return 2.0 * energy / (lattice.area * strain * strain)


def fit_viscoelastic_moduli(
    time: np.ndarray,
    stress: np.ndarray,
    strain_amplitude: float,
    frequency: float,
) -> ViscoelasticModuli:
    """
    Least-squares fit of ``stress = amp * (G' sin wt + G'' cos wt) + c``.

    The in-phase part is the storage modulus, the quadrature part the loss
    modulus.
    """
    time = np.asarray(time, dtype=np.float64)
    stress = np.asarray(stress, dtype=np.float64)
    if time.shape != stress.shape:
        raise ValueError("time and stress must have the same shape")
    if strain_amplitude == 0.0:
        raise ValueError("strain amplitude must be non-zero")
    mask = np.isfinite(stress)
    phase = frequency * time[mask]
    design = np.column_stack((
        strain_amplitude * np.sin(phase),
        strain_amplitude * np.cos(phase),
        np.ones_like(phase),
    ))
    coeffs, residual, _, _ = np.linalg.lstsq(design, stress[mask], rcond=None)
    res = float(residual[0]) if residual.size else 0.0
    return ViscoelasticModuli(float(coeffs[0]), float(coeffs[1]), float(coeffs[2]), res)
