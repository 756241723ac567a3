"""
Force-dipole motors bound to the network's bonds.

Every bond slot carries one motor whose state is the time remaining in its
current state: positive while bound, negative while unbound. A bound motor
pulls along its bond with a constant extra tension. Motors cannot bind to a
missing spring; when an unbound motor's time runs out on a broken bond it
simply draws another unbound period.

Dwell times are exponentially distributed with the configured means.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

MOTOR_FORCE = 1e-2
BOUND_TIME_MEAN = 0.25
UNBOUND_TIME_MEAN = 0.05

_MIN_TIME = np.finfo(np.float64).tiny


@dataclass
class MotorParams:
    force: float = MOTOR_FORCE
    bound_time_mean: float = BOUND_TIME_MEAN
    unbound_time_mean: float = UNBOUND_TIME_MEAN


class Motors:
    """Two-state (bound/unbound) Markov process on every bond slot."""

    def __init__(
        self,
        stiffness: np.ndarray,
        dt: float,
        rng: np.random.Generator,
        params: MotorParams | None = None,
    ) -> None:
        self.params = params or MotorParams()
        if self.params.bound_time_mean <= 0.0 or self.params.unbound_time_mean <= 0.0:
            raise ValueError("motor dwell-time means must be positive")
        self.stiffness = np.asarray(stiffness, dtype=np.float64)
        self.dt = float(dt)
        self.rng = rng
        # All motors start detached.
        self.times = -self.generate_unbound_time(self.stiffness.shape)

    def generate_bound_time(self, shape) -> np.ndarray:
        draws = self.rng.exponential(self.params.bound_time_mean, size=shape)
        return np.maximum(draws, _MIN_TIME)

    def generate_unbound_time(self, shape) -> np.ndarray:
        draws = self.rng.exponential(self.params.unbound_time_mean, size=shape)
        return np.maximum(draws, _MIN_TIME)

    @property
    def bound(self) -> np.ndarray:
        return self.times > 0.0

    def bound_fraction(self) -> float:
        return float(np.mean(self.bound))

    def step(self) -> None:
        """Advance every motor by one time step."""
        dt = self.dt
        times = self.times
        bound = times > 0.0

        detaching = bound & (times <= dt)
        attaching = ~bound & (times >= -dt)
        broken = np.abs(self.stiffness) < 1e-15

        new_times = np.where(bound, times - dt, times + dt)

        n_detach = int(np.count_nonzero(detaching))
        if n_detach:
            new_times[detaching] = -self.generate_unbound_time(n_detach)

        retry = attaching & broken
        n_retry = int(np.count_nonzero(retry))
        if n_retry:
            new_times[retry] = -self.generate_unbound_time(n_retry)

        binding = attaching & ~broken
        n_bind = int(np.count_nonzero(binding))
        if n_bind:
            new_times[binding] = self.generate_bound_time(n_bind)

        self.times = new_times

    def forces(self) -> np.ndarray:
        """Extra bond tension, ``params.force`` where a motor is bound and 0 elsewhere."""
        return np.where(self.bound, self.params.force, 0.0)
