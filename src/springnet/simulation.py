"""
Oscillatory-shear and static-relaxation drivers for spring networks.

:class:`ShearSimulator` owns one :class:`~springnet.network.Network` and runs
it either dynamically (overdamped integration under an oscillating strain,
optional motors and thermal noise) or statically (conjugate-gradient energy
minimization at fixed strain).
"""

from __future__ import annotations

import dataclasses
import math
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import numpy as np

from . import analysis, minimize, utils
from .disorder import intact_fraction
from .errors import ConfigError, ConvergenceError, DivergenceError
from .forces import net_forces
from .integrator import (
    IntegratorParams,
    OverdampedIntegrator,
    steps_per_oscillation,
    time_step_for,
)
from .motors import MotorParams, Motors
from .network import Network
from .nonaffinity import nonaffinity, velocity_nonaffinity
from .output import Printer


@dataclass
class SimulationConfig:
    """Physical, numerical and output settings of one run."""

    size: int = 20
    probability: float = 0.8
    modulus: float = 1.0
    rest_length: float = 1.0
    frequency: float = 1.0
    strain_amplitude: float = 0.01
    temperature: float = 0.0
    seed: Optional[int] = None
    num_oscillations: int = 6
    outputs_per_oscillation: int = 20
    max_time_step: float = 0.1
    viscosity: float = 1.0
    radius: float = 1.0
    drag_coefficient: float = 4.0
    viscous_stress: bool = False
    cutoff_radius: Optional[float] = None
    motors: bool = False
    motor: MotorParams = field(default_factory=MotorParams)
    ftol: float = minimize.FTOL
    gtol: float = minimize.GTOL
    max_iterations: int = minimize.ITMAX
    output_path: str = ""
    position_file: str = ""
    stress_file: str = ""
    energy_file: str = ""
    nonaffinity_file: str = ""

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> "SimulationConfig":
        params = dict(params)
        names = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(params) - names)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
        motor = params.pop("motor", None)
        config = cls(**params)
        if isinstance(motor, Mapping):
            config.motor = MotorParams(**motor)
        elif motor is not None:
            config.motor = motor
        return config

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    def validate(self) -> None:
        """Pre-flight checks; raises :class:`ConfigError` on the first problem."""
        if self.size < 2:
            raise ConfigError(f"Network size must be at least 2, got {self.size}")
        if self.rest_length <= 0.0:
            raise ConfigError("Rest length must be positive")
        if self.frequency < 0.0:
            raise ConfigError("Oscillation frequency must be non-negative")
        if self.temperature < 0.0:
            raise ConfigError("Temperature must be non-negative")
        if self.num_oscillations < 1 or self.outputs_per_oscillation < 1:
            raise ConfigError("Need at least one oscillation and one output per oscillation")
        for name in ("max_time_step", "viscosity", "radius", "drag_coefficient"):
            if getattr(self, name) <= 0.0:
                raise ConfigError(f"{name} must be positive")
        if self.max_iterations < 1:
            raise ConfigError("max_iterations must be at least 1")
        if self.cutoff_radius is not None and self.cutoff_radius < 0.0:
            raise ConfigError("cutoff_radius must be non-negative")
        if self.wants_output() and not self.output_path:
            raise ConfigError("You must specify an output path when any output file is requested")

    def wants_output(self) -> bool:
        return any((self.position_file, self.stress_file, self.energy_file, self.nonaffinity_file))

    def output_file(self, name: str, suffix: str = ".txt") -> Path:
        return Path(self.output_path) / f"{name}{suffix}"

    def describe(self) -> Dict[str, Any]:
        return {
            "p": self.probability,
            "w": self.frequency,
            "N": self.size,
            "e": self.strain_amplitude,
        }


class ShearSimulator:
    """
    The Manager Class.

    Responsibilities:
    1. Build the disordered network from the config (once).
    2. Drive it under oscillatory shear or relax it at fixed strain.
    3. Hand snapshots to the printer and collect the run result.
    """

    def __init__(
        self,
        config: SimulationConfig | None = None,
        *,
        rng: Optional[np.random.Generator] = None,
        network: Optional[Network] = None,
        verbose: bool = False,
    ) -> None:
        self.config = config or SimulationConfig()
        self.config.validate()
        self.rng = rng if rng is not None else utils.make_rng(self.config.seed)
        self.verbose = verbose
        c = self.config

        if network is None:
            network = Network.generate(
                c.size, c.probability, c.modulus,
                rng=self.rng, rest_length=c.rest_length,
            )
        elif network.size != c.size:
            raise ConfigError(f"Network size {network.size} does not match config size {c.size}")
        self.network = network

        # Time stepping for the dynamic mode.
        self.dt = time_step_for(c.frequency, c.max_time_step)
        self.steps_per_oscillation = steps_per_oscillation(c.frequency, self.dt)
        self.n_steps = self.steps_per_oscillation * c.num_oscillations
        self.frame_sep = max(1, self.steps_per_oscillation // c.outputs_per_oscillation)

        self.printer = Printer(c.probability, c.modulus, dt=self.dt, frame_sep=self.frame_sep)

    # ------------------------------------------------------------------ helpers
    def strain_rate_at(self, step: int) -> float:
        c = self.config
        return c.strain_amplitude * c.frequency * math.cos(c.frequency * step * self.dt)

    def _log(self, message: str) -> None:
        if self.verbose:
            print(message)

    def _snapshot(self, frame: int, step: int, strain_rate: float) -> tuple:
        """Write the requested snapshot files and return the non-affinity record."""
        c = self.config
        net = self.network
        if c.position_file:
            path = c.output_file(f"{c.position_file}_{frame}")
            self.printer.print_positions(path, net)
        gamma = nonaffinity(net.lattice, net.positions, net.strain)
        gamma_dd = velocity_nonaffinity(net.lattice, net.delta, self.dt, strain_rate)
        record = (step * self.dt, net.strain, gamma, strain_rate, gamma_dd)
        if c.nonaffinity_file and step > 0:
            self.printer.print_nonaffinity(c.output_file(c.nonaffinity_file), *record)
        return record

    # ------------------------------------------------------------------ dynamic
    def run(self) -> utils.RunResult:
        """
        Integrate the network through ``num_oscillations`` strain cycles.

        Each step: advance motors, compute bond forces and stress from the
        current positions, then move every node. A NaN stress or position
        ends the run with status ``"diverged"``.
        """
        c = self.config
        net = self.network
        integrator = OverdampedIntegrator(
            IntegratorParams(
                dt=self.dt,
                viscosity=c.viscosity,
                radius=c.radius,
                drag_coefficient=c.drag_coefficient,
                temperature=c.temperature,
            ),
            rng=self.rng,
        )
        motors = Motors(net.stiffness, self.dt, self.rng, c.motor) if c.motors else None
        viscosity = c.viscosity if c.viscous_stress else None

        stress = np.full(self.n_steps, np.nan)
        strain = np.full(self.n_steps, np.nan)
        times = np.arange(self.n_steps) * self.dt
        records = []

        if c.nonaffinity_file:
            self.printer.start_nonaffinity(c.output_file(c.nonaffinity_file), c.size)

        self._log(f"Running oscillatory shear: N={c.size}, p={c.probability}, "
                  f"w={c.frequency}, e={c.strain_amplitude}, dt={self.dt:.4g}, "
                  f"steps={self.n_steps}, intact={intact_fraction(net.stiffness):.3f}")
        start_time = time.time()
        status, error = "ok", None
        last_step = self.n_steps

        for step in range(self.n_steps):
            strain[step] = net.strain
            strain_rate = self.strain_rate_at(step)

            motor_force = None
            if motors is not None:
                motors.step()
                motor_force = motors.forces()

            bond_forces = net.bond_forces(motor_force=motor_force, cutoff_radius=c.cutoff_radius)
            stress[step] = net.stress(bond_forces, strain_rate=strain_rate, viscosity=viscosity)

            if math.isnan(stress[step]):
                error = DivergenceError("Stress has gone to NaN", step=step,
                                        parameters=c.describe())
                status, last_step = "diverged", step
                break

            if step % self.frame_sep == 0:
                record = self._snapshot(step // self.frame_sep, step, strain_rate)
                if step > 0:
                    records.append(record)

            try:
                integrator.step(net, net_forces(bond_forces), strain_rate)
            except DivergenceError as err:
                error = DivergenceError(str(err), step=step, parameters=c.describe())
                status, last_step = "diverged", step
                break

            net.strain += strain_rate * self.dt

        elapsed = time.time() - start_time
        if error is not None:
            print(error)
        else:
            self._log(f"Simulation completed: {self.n_steps} steps in {elapsed:.2f}s")

        if c.stress_file:
            self.printer.print_stress(c.output_file(c.stress_file), stress[:last_step + 1],
                                      strain[:last_step + 1], times[:last_step + 1])
        energy = net.energy() if status == "ok" else None
        if c.energy_file and energy is not None:
            self.printer.print_energy(c.output_file(c.energy_file), energy, net.strain)

        return utils.RunResult(
            positions=net.positions.copy(),
            stiffness=net.stiffness.copy(),
            stress=stress,
            strain=strain,
            time=times,
            nonaffinity=np.array(records, dtype=np.float64).reshape(-1, 5),
            energy=energy,
            status=status,
            error=error,
            meta={
                "mode": "dynamic",
                "dt": self.dt,
                "steps": self.n_steps,
                "frame_sep": self.frame_sep,
                "elapsed": elapsed,
                **c.describe(),
            },
        )

    # ------------------------------------------------------------------ static
    def relax(self, strain: Optional[float] = None, *, affine: bool = True) -> utils.RunResult:
        """
        Minimize the elastic energy with the cell held at ``strain``.

        Starts from the affinely sheared lattice unless ``affine`` is False,
        in which case the current positions are used.
        """
        c = self.config
        net = self.network
        net.strain = c.strain_amplitude if strain is None else float(strain)
        if affine:
            net.positions = net.lattice.affine_positions(net.strain)

        self._log(f"Relaxing network: N={c.size}, p={c.probability}, strain={net.strain}")
        start_time = time.time()
        try:
            result = minimize.relax_network(
                net, ftol=c.ftol, gtol=c.gtol, itmax=c.max_iterations,
            )
        except ConvergenceError as err:
            print(err)
            return utils.RunResult(
                positions=net.positions.copy(),
                stiffness=net.stiffness.copy(),
                status="not_converged",
                error=err,
                meta={"mode": "static", "strain": net.strain, **c.describe()},
            )
        elapsed = time.time() - start_time

        bond_forces = net.bond_forces(cutoff_radius=c.cutoff_radius)
        stress = net.stress(bond_forces)
        meta: Dict[str, Any] = {
            "mode": "static",
            "strain": net.strain,
            "iterations": result.iterations,
            "reason": result.reason,
            "elapsed": elapsed,
            **c.describe(),
        }
        if abs(net.strain) > 1e-15:
            meta["modulus_stress"] = analysis.modulus_from_stress(stress, net.strain)
            meta["modulus_energy"] = analysis.modulus_from_energy(net.lattice, result.fun, net.strain)
            meta["nonaffinity"] = nonaffinity(net.lattice, net.positions, net.strain)
        self._log(f"Relaxed in {result.iterations} iterations ({result.reason}), "
                  f"energy={result.fun:.6g}, stress={stress:.6g}")

        if c.position_file:
            self.printer.print_positions(c.output_file(c.position_file), net)
        if c.energy_file:
            self.printer.print_energy(c.output_file(c.energy_file), result.fun, net.strain)
        if c.stress_file:
            self.printer.print_stress(c.output_file(c.stress_file), [stress], [net.strain], [0.0])

        return utils.RunResult(
            positions=net.positions.copy(),
            stiffness=net.stiffness.copy(),
            stress=np.array([stress]),
            strain=np.array([net.strain]),
            energy=result.fun,
            meta=meta,
        )
