"""CSV writers for positions, stress, energy and non-affinity data."""

from __future__ import annotations

import os
from pathlib import Path

import numpy as np

from .network import Network

POSITION_HEADER = "NetSize,Strain,YoungMod,pbond,Spr1,Spr2,Spr3"


class Printer:
    """Writes simulation data as comma-separated text files."""

    def __init__(self, probability: float, modulus: float, dt: float = 0.0,
                 frame_sep: int = 1) -> None:
        self.probability = probability
        self.modulus = modulus
        self.dt = dt
        self.frame_sep = max(1, int(frame_sep))

    @staticmethod
    def _prepare(path: str | os.PathLike[str]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

    def print_positions(self, path: str | os.PathLike[str], network: Network) -> None:
        """Header and parameter line, then ``row,col,x,y,s0,s1,s2`` for every node."""
        path = self._prepare(path)
        n = network.size
        rows, cols = np.meshgrid(np.arange(n), np.arange(n), indexing="ij")
        table = np.column_stack((
            rows.ravel(),
            cols.ravel(),
            network.positions.reshape(-1, 2),
            network.stiffness.reshape(-1, 3),
        ))
        with open(path, "w") as fh:
            fh.write(POSITION_HEADER + "\n")
            fh.write(f"{n},{network.strain:.6g},{self.modulus:.6g},{self.probability:.6g},1,1,1\n")
            np.savetxt(fh, table, delimiter=",", fmt=["%d", "%d", "%.10g", "%.10g", "%g", "%g", "%g"])

    def print_stress(
        self,
        path: str | os.PathLike[str],
        stress: np.ndarray,
        strain: np.ndarray,
        time: np.ndarray | None = None,
    ) -> None:
        """``stress,strain,time`` rows, one every ``frame_sep`` steps."""
        path = self._prepare(path)
        stress = np.asarray(stress, dtype=np.float64)
        strain = np.asarray(strain, dtype=np.float64)
        if time is None:
            time = np.arange(stress.size) * self.dt
        sel = slice(None, None, self.frame_sep)
        table = np.column_stack((stress[sel], strain[sel], np.asarray(time)[sel]))
        np.savetxt(path, table, delimiter=",", fmt="%.10g")

    def print_energy(self, path: str | os.PathLike[str], energy: float, strain: float) -> None:
        """Append ``energy,probability,strain``."""
        path = self._prepare(path)
        with open(path, "a") as fh:
            fh.write(f"{energy:.10g},{self.probability:.6g},{strain:.10g}\n")

    def start_nonaffinity(self, path: str | os.PathLike[str], size: int) -> None:
        """Truncate the file and write the ``probability,N,dt`` line."""
        path = self._prepare(path)
        with open(path, "w") as fh:
            fh.write(f"{self.probability:.6g},{size},{self.dt:.10g}\n")

    def print_nonaffinity(
        self,
        path: str | os.PathLike[str],
        time: float,
        strain: float,
        nonaffinity: float,
        strain_rate: float,
        velocity_nonaffinity: float,
    ) -> None:
        with open(path, "a") as fh:
            fh.write(
                f"{time:.10g},{strain:.10g},{nonaffinity:.10g},"
                f"{strain_rate:.10g},{velocity_nonaffinity:.10g}\n"
            )
