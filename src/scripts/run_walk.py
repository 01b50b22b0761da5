#!/usr/bin/env python3
"""
Single Surface Walk Runner

Runs one surface diffusion simulation and saves positions, MSD and metadata
to a .npz file. Parameters come from the command line, optionally on top of
a JSON/TOML parameter file.
"""

import argparse
import sys
import time
from pathlib import Path

# Add package source to path
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

from surfdiff import StepType, SurfaceWalkParams, utils
from surfdiff.analysis import fit_diffusivity
from surfdiff.simulation import run_model


def build_params(args) -> SurfaceWalkParams:
    """Merge a parameter file (if any) with explicit command-line values."""
    values = utils.load_params(args.params) if args.params else {}
    for key in (
        "step_type", "num_walkers", "num_ticks", "step_length",
        "radius", "n_per_side", "spacing", "seed",
    ):
        value = getattr(args, key)
        if value is not None:
            values[key] = value
    if args.signed_psi:
        values["independent_sign"] = False
    if args.quiet:
        values["verbose"] = False
    return SurfaceWalkParams(**values)


def main():
    parser = argparse.ArgumentParser(
        description="Run a single surface diffusion simulation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--params",
        type=str,
        default=None,
        help="JSON or TOML parameter file",
    )
    parser.add_argument(
        "--step-type",
        dest="step_type",
        choices=[t.value for t in StepType],
        default=None,
        help="Step generator variant (default: cylindrical_surface)",
    )
    parser.add_argument("--num-walkers", dest="num_walkers", type=int, default=None)
    parser.add_argument("--num-ticks", dest="num_ticks", type=int, default=None)
    parser.add_argument(
        "--step-length",
        dest="step_length",
        type=float,
        default=None,
        help="Arclength of each step on the surface",
    )
    parser.add_argument("--radius", type=float, default=None, help="Obstacle radius")
    parser.add_argument("--n-per-side", dest="n_per_side", type=int, default=None)
    parser.add_argument("--spacing", type=float, default=None)
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument(
        "--signed-psi",
        action="store_true",
        help="Take the angular orientation from sin(psi) instead of a separate coin flip",
    )
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    parser.add_argument(
        "--out",
        type=str,
        default=None,
        help="Output .npz file path (auto-generated if not provided)",
    )

    args = parser.parse_args()
    params = build_params(args)

    print(
        f"Running {params.step_type} walk: walkers={params.num_walkers}, "
        f"ticks={params.num_ticks}, seed={params.seed}"
    )
    start_time = time.time()
    result = run_model(params)
    elapsed_time = time.time() - start_time

    if args.out is None:
        timestamp = utils.now_str()
        output_dir = Path("results")
        output_dir.mkdir(exist_ok=True)
        args.out = str(
            output_dir
            / f"{params.step_type}_W{params.num_walkers}_T{params.num_ticks}_S{params.seed}_{timestamp}.npz"
        )

    utils.save_walk_result(args.out, result)

    # a line fit needs at least three MSD samples (ticks 0..2)
    fit = None
    if result.msd.shape[0] >= 3:
        ticks = range(result.msd.shape[0])
        dims = 3 if params.step_type == StepType.FREE.value else 2
        fit = fit_diffusivity(list(ticks), result.msd[:, 0], dims=dims)

    print(f"\nSimulation completed successfully!")
    print(f"   Time elapsed: {elapsed_time:.2f} seconds")
    print(f"   Off-surface steps: {result.meta['off_surface_steps']}")
    if fit is not None:
        D_est, r2 = fit
        print(f"   Diffusivity per tick: {D_est:.4g} (R² = {r2:.4f})")
    else:
        print("   Diffusivity per tick: n/a (fewer than 3 MSD samples)")
    print(f"   Output saved to: {args.out}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
