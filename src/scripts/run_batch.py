#!/usr/bin/env python3
"""
Batch Spring-Network Simulation Runner

Runs a sweep of disordered networks in parallel: every bond probability in
--probabilities is simulated for --count seeds. Each run is saved as an .npz
next to a manifest.json describing the batch.
"""

import argparse
import json
import sys
import time
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Dict

# Add src to path
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

from springnet import ShearSimulator, SimulationConfig, utils


def run_single_simulation(
    mode: str, params: Dict[str, Any], output_path: str
) -> Dict[str, Any]:
    """
    Run one configuration and save its result.

    Called in worker processes, so it has to live at module level.
    """
    config = SimulationConfig.from_dict(params)
    simulator = ShearSimulator(config)
    if mode == "dynamic":
        result = simulator.run()
    elif mode == "static":
        result = simulator.relax()
    else:
        raise ValueError(f"Unknown mode: {mode}")

    result.meta["seed"] = config.seed
    utils.save_result(output_path, result)

    return {
        "output_path": output_path,
        "seed": config.seed,
        "probability": config.probability,
        "status": result.status,
        "energy": result.energy,
    }


def main():
    parser = argparse.ArgumentParser(
        description="Run a batch of spring-network simulations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--mode", choices=["dynamic", "static"], default="dynamic",
                        help="Oscillatory integration or energy minimization (default: dynamic)")
    parser.add_argument("-c", "--config", default=None,
                        help="Base parameter file (JSON or TOML) shared by every run")
    parser.add_argument("--probabilities", type=float, nargs="+", default=[0.8],
                        help="Bond probabilities to sweep (default: 0.8)")
    parser.add_argument("--count", type=int, required=True,
                        help="Number of seeds per probability")
    parser.add_argument("--jobs", type=int, default=1,
                        help="Number of parallel processes (default: 1)")
    parser.add_argument("--name", type=str, default="batch",
                        help="Batch name for output folder (default: 'batch')")
    parser.add_argument("--base-seed", type=int, default=42,
                        help="Base seed (each run gets base_seed + index) (default: 42)")

    args = parser.parse_args()

    base = utils.load_params(args.config) if args.config else {}
    # Validate the shared settings before spawning workers.
    SimulationConfig.from_dict(base).validate()

    timestamp = utils.now_str()
    first_seed = args.base_seed
    last_seed = args.base_seed + args.count - 1
    batch_dir = Path("results") / "batches" / f"{args.name}_{args.mode}_S{first_seed}-{last_seed}_{timestamp}"
    batch_dir.mkdir(parents=True, exist_ok=True)

    manifest = {
        "mode": args.mode,
        "probabilities": args.probabilities,
        "count": args.count,
        "base_seed": args.base_seed,
        "jobs": args.jobs,
        "timestamp": timestamp,
        "batch_name": args.name,
        "base_params": base,
    }
    manifest_path = batch_dir / "manifest.json"
    with open(manifest_path, "w") as f:
        json.dump(manifest, f, indent=2)

    total = args.count * len(args.probabilities)
    print("Batch started:")
    print(f"  Mode: {args.mode}")
    print(f"  Probabilities: {args.probabilities}")
    print(f"  Total simulations: {total}")
    print(f"  Parallel jobs: {args.jobs}")
    print(f"  Output directory: {batch_dir}")
    print()

    tasks = []
    for p in args.probabilities:
        for i in range(args.count):
            seed = args.base_seed + i
            params = dict(base, probability=p, seed=seed)
            output_path = str(batch_dir / f"p{p:g}_{seed}.npz")
            tasks.append((args.mode, params, output_path))

    start_time = time.time()
    results = []
    failed = []

    with ProcessPoolExecutor(max_workers=args.jobs) as executor:
        future_to_task = {
            executor.submit(run_single_simulation, *task): task
            for task in tasks
        }
        completed = 0
        for future in as_completed(future_to_task):
            completed += 1
            task = future_to_task[future]
            try:
                result = future.result()
            except Exception as e:
                failed.append({"task": task[2], "error": str(e)})
                print(f"  [{completed}/{total}] FAILED: {task[2]} - {e}")
                continue
            if result["status"] == "ok":
                results.append(result)
                print(f"  [{completed}/{total}] Completed: p={result['probability']}, "
                      f"seed={result['seed']}")
            else:
                failed.append({"task": task[2], "error": result["status"]})
                print(f"  [{completed}/{total}] {result['status'].upper()}: {task[2]}")

    elapsed_time = time.time() - start_time

    manifest["results"] = {
        "total": total,
        "successful": len(results),
        "failed": len(failed),
        "elapsed_seconds": elapsed_time,
    }
    manifest["simulations"] = results
    if failed:
        manifest["failures"] = failed
    with open(manifest_path, "w") as f:
        json.dump(manifest, f, indent=2)

    print()
    print("=" * 60)
    print("Batch completed!")
    print(f"  Successful: {len(results)}/{total}")
    print(f"  Failed: {len(failed)}/{total}")
    print(f"  Total time: {elapsed_time:.2f} seconds")
    print(f"  Manifest: {manifest_path}")
    print("=" * 60)

    return 0 if not failed else 1


if __name__ == "__main__":
    sys.exit(main())
