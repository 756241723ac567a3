"""
Force, stress and energy of a periodic spring network.

Each bond's force is computed once at its owning node and stored as
``bond_forces[row, col, 2 * k : 2 * k + 2]`` for forward direction ``k + 1``;
the force acts on the owner, pointing toward the neighbour when the spring is
stretched. The neighbour receives the opposite force when nodal forces are
summed.

Springs follow Hooke's law with force ``k * (d - L0) / L0`` and energy
``0.5 * k * (d - L0)**2 / L0``.
"""

from __future__ import annotations

import math
from typing import Optional

import numpy as np
from numba import njit

from .lattice import SQRT3_2, neighbor_shift

###############################################################################
# Kernels
###############################################################################


@njit(cache=True)
def _bond_forces_kernel(pos, stiffness, motor_force, n, strain, rest_length, cutoff_radius):
    forces = np.zeros((n, n, 6))
    for i in range(n):
        for j in range(n):
            base = 2 * (i * n + j)
            x0 = pos[base]
            y0 = pos[base + 1]
            for k in range(3):
                ni, nj, xs, ys = neighbor_shift(n, i, j, k + 1, strain, rest_length)
                other = 2 * (ni * n + nj)
                dx = pos[other] + xs - x0
                dy = pos[other + 1] + ys - y0
                dist = math.sqrt(dx * dx + dy * dy)
                # Collapsed bonds inside the contact radius carry no force.
                if dist == 0.0 or (cutoff_radius > 0.0 and dist <= cutoff_radius):
                    continue
                tension = stiffness[i, j, k] * (dist - rest_length) / rest_length
                tension += motor_force[i, j, k]
                forces[i, j, 2 * k] = tension * dx / dist
                forces[i, j, 2 * k + 1] = tension * dy / dist
    return forces


@njit(cache=True)
def _net_forces_kernel(bond_forces, n):
    net = np.zeros(2 * n * n)
    for i in range(n):
        for j in range(n):
            jl = j - 1 if j > 0 else n - 1
            jr = j + 1 if j < n - 1 else 0
            ib = i - 1 if i > 0 else n - 1
            for c in range(2):
                own = bond_forces[i, j, c] + bond_forces[i, j, 2 + c] + bond_forces[i, j, 4 + c]
                borrowed = (bond_forces[i, jl, c]
                            + bond_forces[ib, j, 2 + c]
                            + bond_forces[ib, jr, 4 + c])
                net[2 * (i * n + j) + c] = own - borrowed
    return net


@njit(cache=True)
def _shear_stress_kernel(pos, bond_forces, n, strain, rest_length):
    total = 0.0
    for i in range(n):
        for j in range(n):
            y0 = pos[2 * (i * n + j) + 1]
            for k in range(3):
                ni, nj, xs, ys = neighbor_shift(n, i, j, k + 1, strain, rest_length)
                dy = pos[2 * (ni * n + nj) + 1] + ys - y0
                total += bond_forces[i, j, 2 * k] * dy
    return total


@njit(cache=True)
def _energy_kernel(pos, stiffness, n, strain, rest_length):
    energy = 0.0
    for i in range(n):
        for j in range(n):
            base = 2 * (i * n + j)
            x0 = pos[base]
            y0 = pos[base + 1]
            for k in range(3):
                spring = stiffness[i, j, k]
                if spring == 0.0:
                    continue
                ni, nj, xs, ys = neighbor_shift(n, i, j, k + 1, strain, rest_length)
                other = 2 * (ni * n + nj)
                dx = pos[other] + xs - x0
                dy = pos[other + 1] + ys - y0
                stretch = math.sqrt(dx * dx + dy * dy) - rest_length
                energy += 0.5 * spring * stretch * stretch / rest_length
    return energy


@njit(cache=True)
def _gradient_kernel(pos, stiffness, n, strain, rest_length):
    grad = np.zeros(2 * n * n)
    springs = np.empty(6)
    for i in range(n):
        for j in range(n):
            jl = j - 1 if j > 0 else n - 1
            jr = j + 1 if j < n - 1 else 0
            ib = i - 1 if i > 0 else n - 1

            # Forward bonds are owned here, backward bonds by the neighbour.
            springs[0] = stiffness[i, j, 0]
            springs[1] = stiffness[i, j, 1]
            springs[2] = stiffness[i, j, 2]
            springs[3] = stiffness[i, jl, 0]
            springs[4] = stiffness[ib, j, 1]
            springs[5] = stiffness[ib, jr, 2]

            base = 2 * (i * n + j)
            x0 = pos[base]
            y0 = pos[base + 1]
            gx = 0.0
            gy = 0.0
            for k in range(6):
                if springs[k] == 0.0:
                    continue
                ni, nj, xs, ys = neighbor_shift(n, i, j, k + 1, strain, rest_length)
                other = 2 * (ni * n + nj)
                dx = pos[other] + xs - x0
                dy = pos[other + 1] + ys - y0
                dist = math.sqrt(dx * dx + dy * dy)
                if dist == 0.0:
                    continue
                scale = springs[k] * (dist - rest_length) / (rest_length * dist)
                gx -= scale * dx
                gy -= scale * dy
            grad[base] = gx
            grad[base + 1] = gy
    return grad


###############################################################################
# Public API
###############################################################################


def _check_shapes(positions: np.ndarray, stiffness: np.ndarray) -> int:
    if stiffness.ndim != 3 or stiffness.shape[2] != 3 or stiffness.shape[0] != stiffness.shape[1]:
        raise ValueError(f"stiffness must have shape (N, N, 3), got {stiffness.shape}")
    n = stiffness.shape[0]
    if positions.shape != (2 * n * n,):
        raise ValueError(
            f"positions must have shape ({2 * n * n},) for N={n}, got {positions.shape}"
        )
    return n


def compute_bond_forces(
    positions: np.ndarray,
    stiffness: np.ndarray,
    strain: float,
    rest_length: float = 1.0,
    *,
    motor_force: Optional[np.ndarray] = None,
    cutoff_radius: Optional[float] = None,
) -> np.ndarray:
    """
    Per-bond forces, shape ``(N, N, 6)``.

    ``motor_force`` (shape ``(N, N, 3)``) is an extra tension added along each
    bond before it is resolved into components. When ``cutoff_radius`` is set, bonds
    whose length is at or below it contribute nothing.
    """
    positions = np.ascontiguousarray(positions, dtype=np.float64)
    stiffness = np.ascontiguousarray(stiffness, dtype=np.float64)
    n = _check_shapes(positions, stiffness)
    if motor_force is None:
        motor_force = np.zeros_like(stiffness)
    else:
        motor_force = np.ascontiguousarray(motor_force, dtype=np.float64)
        if motor_force.shape != stiffness.shape:
            raise ValueError(
                f"motor_force must match stiffness shape {stiffness.shape}, got {motor_force.shape}"
            )
    return _bond_forces_kernel(
        positions, stiffness, motor_force, n, float(strain), float(rest_length),
        0.0 if cutoff_radius is None else float(cutoff_radius),
    )


def net_forces(bond_forces: np.ndarray) -> np.ndarray:
    """Net force on every node as a flat ``(2 * N * N,)`` buffer."""
    bond_forces = np.ascontiguousarray(bond_forces, dtype=np.float64)
    if bond_forces.ndim != 3 or bond_forces.shape[2] != 6:
        raise ValueError(f"bond_forces must have shape (N, N, 6), got {bond_forces.shape}")
    return _net_forces_kernel(bond_forces, bond_forces.shape[0])


def compute_stress(
    bond_forces: np.ndarray,
    positions: np.ndarray,
    strain: float,
    rest_length: float = 1.0,
    *,
    strain_rate: float = 0.0,
    viscosity: Optional[float] = None,
) -> float:
    """
    Shear stress ``sigma_xy`` of the cell.

    Sums ``f_x * dy`` over all bonds and divides by the cell area. With a
    ``viscosity`` the boundary dissipation ``viscosity * strain_rate`` is added.
    """
    bond_forces = np.ascontiguousarray(bond_forces, dtype=np.float64)
    positions = np.ascontiguousarray(positions, dtype=np.float64)
    n = bond_forces.shape[0]
    area = SQRT3_2 * n * n * rest_length * rest_length
    stress = _shear_stress_kernel(positions, bond_forces, n, float(strain), float(rest_length)) / area
    if viscosity is not None:
        stress += viscosity * strain_rate
    return float(stress)


def elastic_energy(
    positions: np.ndarray,
    stiffness: np.ndarray,
    strain: float,
    rest_length: float = 1.0,
) -> float:
    positions = np.ascontiguousarray(positions, dtype=np.float64)
    stiffness = np.ascontiguousarray(stiffness, dtype=np.float64)
    n = _check_shapes(positions, stiffness)
    return float(_energy_kernel(positions, stiffness, n, float(strain), float(rest_length)))


def energy_gradient(
    positions: np.ndarray,
    stiffness: np.ndarray,
    strain: float,
    rest_length: float = 1.0,
) -> np.ndarray:
    """Analytic gradient of :func:`elastic_energy` over the six-bond stencil of each node."""
    positions = np.ascontiguousarray(positions, dtype=np.float64)
    stiffness = np.ascontiguousarray(stiffness, dtype=np.float64)
    n = _check_shapes(positions, stiffness)
    return _gradient_kernel(positions, stiffness, n, float(strain), float(rest_length))


def finite_difference_gradient(
    positions: np.ndarray,
    stiffness: np.ndarray,
    strain: float,
    rest_length: float = 1.0,
    step: float = 1e-6,
) -> np.ndarray:
    """Central-difference gradient; slow, used to check the analytic one."""
    positions = np.array(positions, dtype=np.float64)
    grad = np.empty_like(positions)
    for idx in range(positions.size):
        saved = positions[idx]
        positions[idx] = saved + step
        e_plus = elastic_energy(positions, stiffness, strain, rest_length)
        positions[idx] = saved - step
        e_minus = elastic_energy(positions, stiffness, strain, rest_length)
        positions[idx] = saved
        grad[idx] = (e_plus - e_minus) / (2.0 * step)
    return grad
