"""
Spring Network Simulation Library

Simulates a 2-D triangular lattice of Hookean springs (a crosslinked,
actin-like network) under oscillatory or quasi-static shear:
- Network / TriangularLattice: periodic, shear-transforming lattice state
- ShearSimulator: overdamped dynamics with motors and thermal noise, or
  conjugate-gradient relaxation at fixed strain
"""

from .errors import ConfigError, ConvergenceError, DivergenceError, SpringNetError
from .lattice import TriangularLattice
from .network import Network
from .motors import MotorParams, Motors
from .integrator import IntegratorParams, OverdampedIntegrator
from .minimize import ConjugateGradient, relax_network
from .simulation import SimulationConfig, ShearSimulator
from . import utils

__all__ = [
    # Simulators
    "ShearSimulator",
    "OverdampedIntegrator",
    "ConjugateGradient",
    "relax_network",
    # State
    "Network",
    "TriangularLattice",
    "Motors",
    # Configuration classes
    "SimulationConfig",
    "IntegratorParams",
    "MotorParams",
    # Errors
    "SpringNetError",
    "ConfigError",
    "ConvergenceError",
    "DivergenceError",
    # Utilities
    "utils",
]
