# src/scripts/plot_run.py
"""
Plot a saved spring-network run.

Dynamic runs get a stress/strain time trace and a Lissajous loop with the
fitted storage and loss moduli; any run with positions also gets a drawing of
the network, intact bonds only.
"""
import argparse
import sys
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.collections import LineCollection

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

from springnet import TriangularLattice, utils
from springnet.analysis import fit_viscoelastic_moduli
from springnet.lattice import FORWARD_DIRECTIONS


def bond_segments(positions: np.ndarray, stiffness: np.ndarray) -> np.ndarray:
    """Line segments for every intact bond, without periodic wrap-around bonds."""
    n = stiffness.shape[0]
    lattice = TriangularLattice(n)
    segments = []
    for row in range(n):
        for col in range(n):
            i = lattice.index(row, col)
            start = positions[2 * i:2 * i + 2]
            for direction in FORWARD_DIRECTIONS:
                if stiffness[row, col, direction - 1] <= 0.0:
                    continue
                nb = lattice.neighbor(row, col, direction)
                if nb.xshift != 0.0 or nb.yshift != 0.0:
                    continue
                j = lattice.index(nb.row, nb.col)
                segments.append((start, positions[2 * j:2 * j + 2]))
    return np.array(segments).reshape(-1, 2, 2)


def plot_network(ax, result: utils.RunResult) -> None:
    segments = bond_segments(result.positions, result.stiffness)
    ax.add_collection(LineCollection(segments, colors="k", linewidths=0.6))
    pts = result.positions.reshape(-1, 2)
    ax.scatter(pts[:, 0], pts[:, 1], s=4, c="tab:red")
    ax.set_aspect("equal")
    ax.autoscale()
    ax.set_title(f"Network (status: {result.status})")


def plot_dynamic(axes, result: utils.RunResult) -> None:
    meta = result.meta
    mask = np.isfinite(result.stress)
    t = result.time[mask]
    stress = result.stress[mask]
    strain = result.strain[mask]

    ax_t, ax_loop = axes
    ax_t.plot(t, stress, label="stress")
    ax_t2 = ax_t.twinx()
    ax_t2.plot(t, strain, color="tab:orange", label="strain")
    ax_t.set_xlabel("time")
    ax_t.set_ylabel("stress")
    ax_t2.set_ylabel("strain")
    ax_t.set_title("Stress and strain")

    ax_loop.plot(strain, stress, lw=0.8)
    ax_loop.set_xlabel("strain")
    ax_loop.set_ylabel("stress")
    title = "Lissajous loop"
    if meta.get("e") and stress.size > 3:
        moduli = fit_viscoelastic_moduli(t, stress, meta["e"], meta["w"])
        title += f"\nG'={moduli.storage:.4g}, G''={moduli.loss:.4g}"
    ax_loop.set_title(title)


def main():
    parser = argparse.ArgumentParser(description="Plot a saved spring-network run")
    parser.add_argument("input", type=str, help="Path to a .npz result")
    parser.add_argument("--output", type=str, default=None,
                        help="Save the figure here instead of showing it")
    parser.add_argument("--dpi", type=int, default=150)
    args = parser.parse_args()

    result = utils.load_result(args.input)
    dynamic = result.meta.get("mode") == "dynamic" and result.stress is not None
    panels = (2 if dynamic else 0) + (1 if result.positions is not None else 0)
    if panels == 0:
        print(f"Nothing to plot in {args.input}")
        return 1

    fig, axes = plt.subplots(1, panels, figsize=(5 * panels, 4.5), squeeze=False)
    axes = list(axes[0])
    if dynamic:
        plot_dynamic(axes[:2], result)
        axes = axes[2:]
    if result.positions is not None:
        plot_network(axes[0], result)
    fig.tight_layout()

    if args.output:
        out = Path(args.output)
        out.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(out, dpi=args.dpi)
        print(f"Saved figure to {out}")
    else:
        plt.show()
    return 0


if __name__ == "__main__":
    sys.exit(main())
