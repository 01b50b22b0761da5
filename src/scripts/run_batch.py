#!/usr/bin/env python3
"""
Batch Surface Walk Runner

Runs independent surface walk simulations in parallel, one seed per
process. Step generators are never shared between processes or walkers.
"""

import argparse
import json
import sys
import time
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, Any

# Add package source to path
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

from surfdiff import StepType, SurfaceWalkParams, utils
from surfdiff.simulation import run_model


def run_single_simulation(
    step_type: str, num_walkers: int, num_ticks: int, step_length: float,
    radius: float, spacing: float, n_per_side: int, independent_sign: bool,
    seed: int, output_path: str,
) -> Dict[str, Any]:
    """
    Run a single simulation and save it.

    Called in parallel by ProcessPoolExecutor, so it must live at module
    level for pickling.
    """
    params = SurfaceWalkParams(
        step_type=step_type,
        num_walkers=num_walkers,
        num_ticks=num_ticks,
        step_length=step_length,
        radius=radius,
        spacing=spacing,
        n_per_side=n_per_side,
        independent_sign=independent_sign,
        seed=seed,
        verbose=False,
    )
    result = run_model(params)
    utils.save_walk_result(output_path, result)

    return {
        "output_path": output_path,
        "seed": seed,
        "final_msd": float(result.msd[-1, 0]),
        "off_surface_steps": int(result.meta["off_surface_steps"]),
        "success": True,
    }


def main():
    parser = argparse.ArgumentParser(
        description="Generate a batch of surface walk simulations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--step-type",
        dest="step_type",
        choices=[t.value for t in StepType],
        default=StepType.CYLINDRICAL_SURFACE.value,
        help="Step generator variant (default: cylindrical_surface)",
    )
    parser.add_argument("--num-walkers", dest="num_walkers", type=int, default=100)
    parser.add_argument("--num-ticks", dest="num_ticks", type=int, default=1000)
    parser.add_argument("--step-length", dest="step_length", type=float, default=0.05)
    parser.add_argument("--radius", type=float, default=2.0, help="Obstacle radius")
    parser.add_argument("--spacing", type=float, default=10.0)
    parser.add_argument("--n-per-side", dest="n_per_side", type=int, default=1)
    parser.add_argument(
        "--signed-psi",
        action="store_true",
        help="Take the angular orientation from sin(psi) instead of a separate coin flip",
    )
    parser.add_argument(
        "--count",
        type=int,
        required=True,
        help="Number of simulations to generate",
    )
    parser.add_argument(
        "--jobs",
        type=int,
        default=1,
        help="Number of parallel processes (default: 1)",
    )
    parser.add_argument(
        "--base-seed",
        type=int,
        default=42,
        help="Base seed (each simulation gets base_seed + index) (default: 42)",
    )

    args = parser.parse_args()

    first_seed = args.base_seed
    last_seed = args.base_seed + args.count - 1

    timestamp = utils.now_str()
    batch_dir = (
        Path("results") / "batches"
        / f"{args.step_type}_W{args.num_walkers}_S{first_seed}-{last_seed}_{timestamp}"
    )
    batch_dir.mkdir(parents=True, exist_ok=True)

    manifest = {
        "step_type": args.step_type,
        "num_walkers": args.num_walkers,
        "num_ticks": args.num_ticks,
        "step_length": args.step_length,
        "radius": args.radius,
        "spacing": args.spacing,
        "n_per_side": args.n_per_side,
        "independent_sign": not args.signed_psi,
        "count": args.count,
        "base_seed": args.base_seed,
        "jobs": args.jobs,
        "timestamp": timestamp,
    }
    manifest_path = batch_dir / "manifest.json"
    with open(manifest_path, "w") as f:
        json.dump(manifest, f, indent=2)

    print(f"Batch generation started:")
    print(f"  Step type: {args.step_type}")
    print(f"  Walkers per simulation: {args.num_walkers}")
    print(f"  Total simulations: {args.count}")
    print(f"  Parallel jobs: {args.jobs}")
    print(f"  Output directory: {batch_dir}")
    print()

    tasks = []
    for i in range(args.count):
        seed = args.base_seed + i
        output_path = str(batch_dir / f"{seed}.npz")
        tasks.append(
            (
                args.step_type, args.num_walkers, args.num_ticks, args.step_length,
                args.radius, args.spacing, args.n_per_side, not args.signed_psi,
                seed, output_path,
            )
        )

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
                results.append(result)
                print(
                    f"  [{completed}/{args.count}] Completed: seed={result['seed']}, "
                    f"msd={result['final_msd']:.4g}"
                )
            except Exception as e:
                failed.append({"task": list(task), "error": str(e)})
                print(f"  [{completed}/{args.count}] FAILED: seed={task[-2]} - {e}")

    elapsed_time = time.time() - start_time

    manifest["results"] = {
        "total": args.count,
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
    print("Batch generation completed!")
    print(f"  Successful: {len(results)}/{args.count}")
    print(f"  Failed: {len(failed)}/{args.count}")
    print(f"  Total time: {elapsed_time:.2f} seconds")
    print(f"  Manifest: {manifest_path}")
    print("=" * 60)

    return 0 if len(failed) == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
