"""
Overdamped (Stokes drag) time integration of the node positions.

    dr = dt * (F / gamma + v_affine) + thermal kick

with ``gamma = c * pi * eta * R``. The affine velocity follows the imposed
shear, ``v_affine = strain_rate * (y_row - y_mid)`` along x. Thermal kicks are
2-D Gaussian with variance ``2 * D * dt`` per component, ``D = kB * T / gamma``,
drawn by Box-Muller from two uniforms.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .errors import DivergenceError
from .lattice import TriangularLattice
from .network import Network

BOLTZMANN = 1.0
MAX_TIME_STEP = 0.1
STEPS_PER_PERIOD = 1000
QUASI_STATIC_STEPS = 1000


@dataclass
class IntegratorParams:
    dt: float = 0.01
    viscosity: float = 1.0
    radius: float = 1.0
    drag_coefficient: float = 4.0
    temperature: float = 0.0
    boltzmann: float = BOLTZMANN

    @property
    def drag(self) -> float:
        return self.drag_coefficient * math.pi * self.viscosity * self.radius

    @property
    def diffusion(self) -> float:
        return self.boltzmann * self.temperature / self.drag


def time_step_for(frequency: float, max_time_step: float = MAX_TIME_STEP) -> float:
    """A thousandth of the oscillation period, capped at ``max_time_step``."""
    if frequency <= 1e-15:
        return max_time_step
    return min(2.0 * math.pi / (STEPS_PER_PERIOD * frequency), max_time_step)


def steps_per_oscillation(frequency: float, dt: float) -> int:
    if frequency <= 1e-15:
        return QUASI_STATIC_STEPS
    return int(2.0 * math.pi / (frequency * dt))


def affine_velocity(lattice: TriangularLattice, strain_rate: float) -> np.ndarray:
    """x-velocity of each row under affine shear about mid-height."""
    return strain_rate * (lattice.row_heights() - lattice.mid_height())


def box_muller(rng: np.random.Generator, sigma: float, count: int):
    """Two independent ``N(0, sigma**2)`` arrays built from uniform draws."""
    theta = 2.0 * math.pi * rng.random(count)
    # 1 - U lies in (0, 1], keeping the log finite.
    r = sigma * np.sqrt(-2.0 * np.log(1.0 - rng.random(count)))
    return r * np.cos(theta), r * np.sin(theta)


class OverdampedIntegrator:

    def __init__(
        self,
        params: IntegratorParams | None = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.params = params or IntegratorParams()
        if self.params.dt <= 0.0:
            raise ValueError(f"time step must be positive, got {self.params.dt}")
        if self.params.drag <= 0.0:
            raise ValueError("drag must be positive (check viscosity, radius and coefficient)")
        if self.params.temperature > 1e-15 and rng is None:
            raise ValueError("a random generator is required when temperature > 0")
        self.rng = rng

    def thermal_kicks(self, num_nodes: int):
        p = self.params
        if p.temperature <= 1e-15:
            return None
        sigma = math.sqrt(2.0 * p.diffusion * p.dt)
        return box_muller(self.rng, sigma, num_nodes)

    def step(self, network: Network, net_force: np.ndarray, strain_rate: float) -> np.ndarray:
        """
        Move every node by one time step, in place.

        ``net_force`` must be computed from the positions before the step.
        Returns the displacement array and stores it on ``network.delta``.
        Raises :class:`DivergenceError` if any coordinate becomes NaN.
        """
        p = self.params
        n = network.size
        force = np.asarray(net_force, dtype=np.float64).reshape(n, n, 2)

        delta = np.empty((n, n, 2), dtype=np.float64)
        delta[:, :, 0] = p.dt * (force[:, :, 0] / p.drag
                                 + affine_velocity(network.lattice, strain_rate)[:, None])
        delta[:, :, 1] = p.dt * force[:, :, 1] / p.drag

        kicks = self.thermal_kicks(n * n)
        if kicks is not None:
            delta[:, :, 0] += kicks[0].reshape(n, n)
            delta[:, :, 1] += kicks[1].reshape(n, n)

        delta = delta.reshape(-1)
        network.positions += delta
        network.delta = delta

        if np.isnan(network.positions).any():
            bad = int(np.flatnonzero(np.isnan(network.positions))[0]) // 2
            raise DivergenceError(
                "NaN value assigned",
                parameters={"size": n, "strain": network.strain, "node": bad},
            )
        return delta
