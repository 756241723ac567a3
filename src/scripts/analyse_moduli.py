"""
Quasi-static shear modulus analysis.

Relaxes one disordered network at a series of strains and extracts the shear
modulus two ways:
1. Stress-strain slope (linear regression of sigma against gamma)
2. Energy-strain curvature (regression of E against gamma^2, G = 2 slope / A)
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
from matplotlib import pyplot as plt
from scipy.stats import linregress

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

from springnet import ShearSimulator, SimulationConfig, utils


def strain_sweep(config: SimulationConfig, strains: np.ndarray) -> dict:
    """
    Relax the same network at every strain.

    Returns arrays of strain, stress, energy and non-affinity for the runs
    that converged.
    """
    simulator = ShearSimulator(config)
    rows = []
    for gamma in strains:
        result = simulator.relax(float(gamma))
        if not result.ok:
            print(f"  strain={gamma:.4g}: {result.status}, skipped")
            continue
        rows.append((gamma, result.stress[0], result.energy,
                     result.meta.get("nonaffinity", 0.0)))
        print(f"  strain={gamma:.4g}: stress={result.stress[0]:.6g}, "
              f"energy={result.energy:.6g}, iterations={result.meta['iterations']}")
    data = np.array(rows, dtype=np.float64).reshape(-1, 4)
    return {
        "strain": data[:, 0],
        "stress": data[:, 1],
        "energy": data[:, 2],
        "nonaffinity": data[:, 3],
        "area": simulator.network.lattice.area,
    }


def fit_moduli(sweep: dict) -> tuple[float, float, float, float]:
    """
    Returns:
        Tuple of (G_stress, r2_stress, G_energy, r2_energy)
    """
    if sweep["strain"].size < 3:
        raise ValueError("Too few converged strains for a regression (need at least 3).")
    stress_fit = linregress(sweep["strain"], sweep["stress"])
    energy_fit = linregress(sweep["strain"] ** 2, sweep["energy"])
    g_energy = 2.0 * energy_fit.slope / sweep["area"]
    return stress_fit.slope, stress_fit.rvalue ** 2, g_energy, energy_fit.rvalue ** 2


def plot_sweep(sweep: dict, fits: tuple, output: Path | None) -> None:
    g_stress, r2_stress, g_energy, r2_energy = fits
    fig, (ax1, ax2, ax3) = plt.subplots(1, 3, figsize=(14, 4.5))

    ax1.plot(sweep["strain"], sweep["stress"], "o")
    ax1.plot(sweep["strain"], g_stress * sweep["strain"], "--",
             label=f"G = {g_stress:.4g} (R² = {r2_stress:.3f})")
    ax1.set_xlabel("strain")
    ax1.set_ylabel("stress")
    ax1.legend()

    ax2.plot(sweep["strain"] ** 2, sweep["energy"], "o")
    ax2.plot(sweep["strain"] ** 2, 0.5 * g_energy * sweep["area"] * sweep["strain"] ** 2, "--",
             label=f"G = {g_energy:.4g} (R² = {r2_energy:.3f})")
    ax2.set_xlabel("strain²")
    ax2.set_ylabel("energy")
    ax2.legend()

    ax3.plot(sweep["strain"], sweep["nonaffinity"], "o-")
    ax3.set_xlabel("strain")
    ax3.set_ylabel("non-affinity")

    fig.tight_layout()
    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output, dpi=150)
        print(f"Saved figure to {output}")
    else:
        plt.show()


def main():
    parser = argparse.ArgumentParser(description="Shear modulus from a quasi-static strain sweep")
    parser.add_argument("-c", "--config", default=None, help="Parameter file (JSON or TOML)")
    parser.add_argument("-z", "--netsize", type=int, default=None, help="Network dimensions")
    parser.add_argument("-p", "--probability", type=float, default=None, help="Bond probability")
    parser.add_argument("--prng", type=int, default=None, help="PRNG seed")
    parser.add_argument("--max-strain", type=float, default=0.05, help="Largest strain (default: 0.05)")
    parser.add_argument("--points", type=int, default=6, help="Number of strains (default: 6)")
    parser.add_argument("--output", type=str, default=None, help="Save the figure here")
    args = parser.parse_args()

    params = utils.load_params(args.config) if args.config else {}
    for flag, name in (("netsize", "size"), ("probability", "probability"), ("prng", "seed")):
        value = getattr(args, flag)
        if value is not None:
            params[name] = value
    config = SimulationConfig.from_dict(params)

    strains = np.linspace(args.max_strain / args.points, args.max_strain, args.points)
    print(f"Strain sweep: N={config.size}, p={config.probability}, {args.points} strains")
    sweep = strain_sweep(config, strains)

    try:
        fits = fit_moduli(sweep)
    except ValueError as err:
        print(f"Analysis failed: {err}")
        return 1

    g_stress, r2_stress, g_energy, r2_energy = fits
    print()
    print(f"  G from stress : {g_stress:.6g} (R² = {r2_stress:.4f})")
    print(f"  G from energy : {g_energy:.6g} (R² = {r2_energy:.4f})")

    plot_sweep(sweep, fits, Path(args.output) if args.output else None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
