"""
The mutable state of one simulated network.

A :class:`Network` bundles the lattice geometry with the node positions, the
bond stiffnesses and the current shear strain, and is passed explicitly to
every engine routine.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from . import forces
from .disorder import generate_stiffness_array
from .lattice import TriangularLattice


@dataclass
class Network:
    lattice: TriangularLattice
    stiffness: np.ndarray
    positions: np.ndarray
    strain: float = 0.0
    # Displacement of every coordinate during the last time step.
    delta: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        n = self.lattice.size
        self.stiffness = np.ascontiguousarray(self.stiffness, dtype=np.float64)
        self.positions = np.ascontiguousarray(self.positions, dtype=np.float64)
        if self.stiffness.shape != (n, n, 3):
            raise ValueError(f"stiffness must have shape {(n, n, 3)}, got {self.stiffness.shape}")
        if self.positions.shape != (2 * n * n,):
            raise ValueError(f"positions must have shape {(2 * n * n,)}, got {self.positions.shape}")
        if self.delta is None:
            self.delta = np.zeros_like(self.positions)

    @classmethod
    def generate(
        cls,
        size: int,
        probability: float,
        modulus: float = 1.0,
        *,
        rng: np.random.Generator,
        rest_length: float = 1.0,
        strain: float = 0.0,
        affine: bool = False,
    ) -> "Network":
        """
        Build a disordered network on the rest lattice.

        With ``affine=True`` the nodes start on the affinely sheared lattice
        for ``strain`` instead of the unstrained one.
        """
        lattice = TriangularLattice(size, rest_length)
        stiffness = generate_stiffness_array(size, probability, modulus, rng)
        positions = lattice.affine_positions(strain) if affine else lattice.rest_positions()
        return cls(lattice, stiffness, positions, strain=float(strain))

    @property
    def size(self) -> int:
        return self.lattice.size

    @property
    def rest_length(self) -> float:
        return self.lattice.rest_length

    def copy(self) -> "Network":
        return Network(
            self.lattice,
            self.stiffness.copy(),
            self.positions.copy(),
            strain=self.strain,
            delta=self.delta.copy(),
        )

    def node_position(self, row: int, col: int) -> np.ndarray:
        k = self.lattice.index(row, col)
        return self.positions[2 * k: 2 * k + 2].copy()

    # ------------------------------------------------------------------ engine
    def bond_forces(
        self,
        motor_force: Optional[np.ndarray] = None,
        cutoff_radius: Optional[float] = None,
    ) -> np.ndarray:
        return forces.compute_bond_forces(
            self.positions, self.stiffness, self.strain, self.rest_length,
            motor_force=motor_force, cutoff_radius=cutoff_radius,
        )

    def stress(
        self,
        bond_forces: np.ndarray,
        strain_rate: float = 0.0,
        viscosity: Optional[float] = None,
    ) -> float:
        return forces.compute_stress(
            bond_forces, self.positions, self.strain, self.rest_length,
            strain_rate=strain_rate, viscosity=viscosity,
        )

    def energy(self, positions: Optional[np.ndarray] = None) -> float:
        pos = self.positions if positions is None else positions
        return forces.elastic_energy(pos, self.stiffness, self.strain, self.rest_length)

    def gradient(self, positions: Optional[np.ndarray] = None) -> np.ndarray:
        pos = self.positions if positions is None else positions
        return forces.energy_gradient(pos, self.stiffness, self.strain, self.rest_length)
