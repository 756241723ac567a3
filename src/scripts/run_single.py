#!/usr/bin/env python3
"""
Single Spring-Network Simulation Runner

A clean, standardized CLI for running one sheared-network simulation.
Supports two modes: dynamic (oscillatory shear, overdamped integration)
and static (energy minimization at fixed strain).

Settings are taken from, in increasing priority: built-in defaults, the
parameter file given with --config (JSON or TOML), and command-line flags.
"""

import argparse
import sys
from pathlib import Path

# Add src to path
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

from springnet import ConfigError, ShearSimulator, SimulationConfig, utils

# CLI destination -> SimulationConfig field
FLAG_FIELDS = {
    "netsize": "size",
    "probability": "probability",
    "rate": "frequency",
    "strain": "strain_amplitude",
    "temp": "temperature",
    "prng": "seed",
    "motors": "motors",
    "num_osc": "num_oscillations",
    "out_per_osc": "outputs_per_oscillation",
    "en_fn": "energy_file",
    "aff_fn": "nonaffinity_file",
    "pos_fn": "position_file",
    "st_fn": "stress_file",
    "output": "output_path",
}


def build_config(args: argparse.Namespace) -> SimulationConfig:
    params = {}
    if args.config is not None:
        config_path = Path(args.config)
        if not config_path.exists():
            raise ConfigError(f"Couldn't open config file {config_path}")
        params.update(utils.load_params(config_path))
    for flag, name in FLAG_FIELDS.items():
        value = getattr(args, flag)
        if value is not None:
            params[name] = value
    if args.job:
        params["output_path"] = str(Path(params.get("output_path", "")) / args.job)
    config = SimulationConfig.from_dict(params)
    config.validate()
    return config


def main():
    parser = argparse.ArgumentParser(
        description="Run a single spring-network shear simulation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    general = parser.add_argument_group("General options")
    general.add_argument("-c", "--config", default=None, help="Parameter file (JSON or TOML)")
    general.add_argument("--mode", choices=["dynamic", "static"], default="dynamic",
                         help="Oscillatory integration or energy minimization (default: dynamic)")
    general.add_argument("-z", "--netsize", type=int, default=None, help="Network dimensions (default: 20)")
    general.add_argument("-p", "--probability", type=float, default=None, help="Bond probability (default: 0.8)")
    general.add_argument("-r", "--rate", type=float, default=None, help="Oscillation frequency (default: 1.0)")
    general.add_argument("-e", "--strain", type=float, default=None, help="Strain amplitude (default: 0.01)")
    general.add_argument("-t", "--temp", type=float, default=None, help="Temperature (default: 0.0)")
    general.add_argument("--prng", type=int, default=None, help="PRNG seed, 0 for fresh entropy (default: 0)")
    general.add_argument("-j", "--job", default="", help="Job subdirectory of the output path")
    general.add_argument("-m", "--motors", action="store_true", default=None, help="Enable motors")

    files = parser.add_argument_group("Filename options")
    files.add_argument("--en-fn", dest="en_fn", default=None, help="Energy data file name")
    files.add_argument("--aff-fn", dest="aff_fn", default=None, help="Non-affinity data file name")
    files.add_argument("--pos-fn", dest="pos_fn", default=None, help="Position data file name")
    files.add_argument("--st-fn", dest="st_fn", default=None, help="Stress data file name")
    files.add_argument("--num-osc", dest="num_osc", type=int, default=None,
                       help="Number of full oscillations (default: 6)")
    files.add_argument("--out-per-osc", dest="out_per_osc", type=int, default=None,
                       help="Data points to output per oscillation (default: 20)")
    files.add_argument("--output", default=None, help="Output path")
    files.add_argument("--npz", default=None, help="Also save the run result to this .npz file")

    args = parser.parse_args()

    try:
        config = build_config(args)
    except ConfigError as err:
        print(f"Configuration error: {err}")
        return 1

    simulator = ShearSimulator(config, verbose=True)
    if args.mode == "dynamic":
        result = simulator.run()
    else:
        result = simulator.relax()

    if args.npz:
        utils.save_result(args.npz, result)
        print(f"Result saved to {args.npz}")

    if not result.ok:
        print(f"Run ended with status '{result.status}'")
        return 2
    if args.mode == "static" and "modulus_stress" in result.meta:
        print(f"  Energy            : {result.energy:.6g}")
        print(f"  G (stress)        : {result.meta['modulus_stress']:.6g}")
        print(f"  G (energy)        : {result.meta['modulus_energy']:.6g}")
        print(f"  Non-affinity      : {result.meta['nonaffinity']:.6g}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
