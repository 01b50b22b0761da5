"""
Plot a saved surface walk: final positions on the unrolled cylinder and the
mean squared displacement curves.
"""
import argparse
import os
import sys
from pathlib import Path

import numpy as np
from matplotlib import pyplot as plt

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

from surfdiff import utils


def unrolled_coordinates(positions: np.ndarray, spacing: float, n_per_side: int):
    """
    (r*theta, z) for each walker relative to the nearest lattice cylinder
    centre.
    """
    size = spacing * n_per_side
    xy = np.mod(positions[:, :2], size)
    centre = (np.floor(xy / spacing) + 0.5) * spacing
    rel = xy - centre
    r = np.hypot(rel[:, 0], rel[:, 1])
    return r * np.arctan2(rel[:, 1], rel[:, 0]), positions[:, 2]


def render(result, output=None, show=False, dpi=150):
    meta = result.meta or {}
    fig, (ax_pos, ax_msd) = plt.subplots(1, 2, figsize=(11, 5))

    if meta.get("step_type") == "cylindrical_surface":
        s, z = unrolled_coordinates(
            result.positions, float(meta.get("spacing", 10.0)), int(meta.get("n_per_side", 1))
        )
        ax_pos.scatter(s, z, s=4, alpha=0.6)
        ax_pos.set_xlabel(r"$r\theta$")
        ax_pos.set_ylabel("z")
        ax_pos.set_title("Final positions (unrolled)")
    else:
        ax_pos.scatter(result.positions[:, 0], result.positions[:, 1], s=4, alpha=0.6)
        ax_pos.set_xlabel("x")
        ax_pos.set_ylabel("y")
        ax_pos.set_title("Final positions")

    ticks = np.arange(result.msd.shape[0])
    for col, label in enumerate(("total", "axial", "transverse")):
        ax_msd.plot(ticks, result.msd[:, col], label=label)
    ax_msd.set_xlabel("tick")
    ax_msd.set_ylabel("MSD")
    ax_msd.legend()
    ax_msd.set_title(
        f"{meta.get('step_type', '?')}: {meta.get('num_walkers', '?')} walkers, "
        f"L={meta.get('step_length', '?')}"
    )
    fig.tight_layout()

    if output:
        os.makedirs(os.path.dirname(output) if os.path.dirname(output) else ".", exist_ok=True)
        plt.savefig(output, dpi=dpi, bbox_inches="tight")
        print(f"Saved figure to {output}")
    if show:
        plt.show()
    plt.close(fig)


def main():
    parser = argparse.ArgumentParser(description="Plot a saved surface walk .npz")
    parser.add_argument("file", help="Path to .npz walk file")
    parser.add_argument("--out", default=None, help="Output image path (PNG)")
    parser.add_argument("--dpi", type=int, default=150)
    parser.add_argument("--show", action="store_true", help="Show plot interactively")
    args = parser.parse_args()

    if not os.path.exists(args.file):
        print(f"Error: file not found: {args.file}")
        return 1

    if args.out is None and not args.show:
        args.out = str(Path(args.file).with_suffix(".png"))

    result = utils.load_walk_result(args.file)
    render(result, output=args.out, show=args.show, dpi=args.dpi)
    return 0


if __name__ == "__main__":
    sys.exit(main())
