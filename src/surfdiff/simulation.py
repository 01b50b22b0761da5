"""
Tick-by-tick driver for walkers diffusing on obstacle surfaces.

Each walker gets its own step generator (and therefore its own random
stream), so walkers are independent of the order in which they are stepped.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import List

import numpy as np

from . import utils
from .geometry import (
    D,
    Cylinder,
    ObstacleSubstrate,
    Sphere,
    cylinder_lattice,
    from_cylindrical,
    on_surface,
)
from .steps import (
    DEFAULT_WALKER_RADIUS_RATIO,
    CylindricalSurfaceStepGenerator,
    FreeStepGenerator,
    SphericalSurfaceStepGenerator,
    StepGenerator,
    StepParams,
    StepType,
    free_step,
    make_step_generator,
)


@dataclass
class SurfaceWalkParams:
    """Configuration for a surface diffusion run."""

    num_walkers: int = 100
    num_ticks: int = 1000
    step_type: str = StepType.CYLINDRICAL_SURFACE.value
    step_length: float = 0.05
    walker_radius_ratio: float = DEFAULT_WALKER_RADIUS_RATIO
    seed: int = 0
    independent_sign: bool = True
    # obstacle lattice
    n_per_side: int = 1
    spacing: float = 10.0
    radius: float = 2.0
    tolerance: float = 1e-9
    verbose: bool = True


class Walker:
    """Point particle; the step generators only read ``r`` and ``substrate``."""

    def __init__(self, r, substrate: ObstacleSubstrate | None = None):
        self.r = np.array(r, dtype=np.float64)
        self.r0 = self.r.copy()
        self.substrate = substrate

    def make_step(self, step: np.ndarray) -> None:
        self.r += step

    def substrate_coords(self) -> np.ndarray:
        if self.substrate is None:
            return self.r.copy()
        out = np.empty(D, dtype=np.float64)
        return self.substrate.get_substrate_coords(self.r, np.zeros(D), out)


def check_membership(
    generator: StepGenerator, pos: np.ndarray, obstacle, tol: float = 1e-9
) -> bool:
    """Whether ``pos`` satisfies the constraint of the generator's variant."""
    match generator:
        case CylindricalSurfaceStepGenerator() | SphericalSurfaceStepGenerator():
            return on_surface(pos, obstacle, tol)
        case FreeStepGenerator():
            return True
    raise TypeError(f"Unknown step generator: {type(generator).__name__}")


def build_substrate(params: SurfaceWalkParams) -> ObstacleSubstrate:
    step_type = StepType(params.step_type)
    if step_type == StepType.FREE:
        return ObstacleSubstrate()
    lattice = cylinder_lattice(params.n_per_side, params.spacing, params.radius)
    if step_type == StepType.SPHERICAL_SURFACE:
        spheres = [Sphere(c.position, c.radius) for c in lattice.get_cylinders()]
        return ObstacleSubstrate(spheres=spheres, size=lattice.size)
    return lattice


class SurfaceWalkSimulator:
    def __init__(self, params: SurfaceWalkParams | dict | None = None):
        if params is None:
            params = SurfaceWalkParams()
        elif isinstance(params, dict):
            params = SurfaceWalkParams(**params)
        if params.num_walkers < 1:
            raise ValueError("num_walkers must be at least 1")
        if params.num_ticks < 0:
            raise ValueError("num_ticks must be non-negative")
        self.params = params
        self.step_type = StepType(params.step_type)
        self.substrate = build_substrate(params)

        self.walkers: List[Walker] = []
        self.generators: List[StepGenerator] = []
        self.obstacles: list = []
        self.off_surface_steps = 0
        self.msd = None
        self._has_run = False

        self._place_walkers()

    def _obstacles(self) -> tuple:
        if self.step_type == StepType.CYLINDRICAL_SURFACE:
            return self.substrate.get_cylinders()
        if self.step_type == StepType.SPHERICAL_SURFACE:
            return self.substrate.get_spheres()
        return ()

    def _place_walkers(self) -> None:
        """Spread walkers uniformly over the obstacle surfaces, round robin."""
        p = self.params
        rng = np.random.default_rng(p.seed)
        obstacles = self._obstacles()

        for i in range(p.num_walkers):
            obstacle = obstacles[i % len(obstacles)] if obstacles else None
            if isinstance(obstacle, Cylinder):
                theta = rng.uniform(-np.pi, np.pi)
                r = from_cylindrical(obstacle.radius, theta, 0.0, obstacle)
            elif isinstance(obstacle, Sphere):
                offset = free_step(obstacle.radius, rng.random(), rng.random())
                r = obstacle.position + np.array(offset)
            else:
                r = np.zeros(D)

            step_params = StepParams(
                step_length=p.step_length,
                walker_radius_ratio=p.walker_radius_ratio,
                seed=p.seed,
                stream=i,
                independent_sign=p.independent_sign,
            )
            generator = make_step_generator(self.step_type, step_params, self.substrate)
            match generator:
                case CylindricalSurfaceStepGenerator():
                    generator.set_cylinder(obstacle)
                case SphericalSurfaceStepGenerator():
                    generator.set_sphere(obstacle)

            self.walkers.append(Walker(r, self.substrate))
            self.generators.append(generator)
            self.obstacles.append(obstacle)

    def _record(self, tick: int) -> None:
        disp = self._positions() - np.array([w.r0 for w in self.walkers])
        sq = disp * disp
        self.msd[tick, 0] = np.mean(sq.sum(axis=1))
        self.msd[tick, 1] = np.mean(sq[:, 2])
        self.msd[tick, 2] = np.mean(sq[:, 0] + sq[:, 1])

    def run(self) -> None:
        """
        Advance every walker ``num_ticks`` times.

        After each step the walker is checked against its obstacle; failures
        are counted in ``off_surface_steps`` rather than raised.
        """
        p = self.params
        t_start = time.perf_counter()

        # columns: total, axial (z), transverse (x, y)
        self.msd = np.zeros((p.num_ticks + 1, 3), dtype=np.float64)
        self._record(0)

        report_every = max(1, p.num_ticks // 10)
        for tick in range(1, p.num_ticks + 1):
            for walker, generator, obstacle in zip(self.walkers, self.generators, self.obstacles):
                walker.make_step(generator.get_step(walker, obstacle))
                if not check_membership(generator, walker.substrate_coords(), obstacle, p.tolerance):
                    self.off_surface_steps += 1
            self._record(tick)

            if p.verbose and tick % report_every == 0:
                elapsed = time.perf_counter() - t_start
                print(
                    f"[{self.step_type.value}] tick {tick}/{p.num_ticks}, "
                    f"msd={self.msd[tick, 0]:.4g}, elapsed={elapsed:.1f}s"
                )

        self._has_run = True
        self.time_elapsed = time.perf_counter() - t_start
        if p.verbose:
            total_steps = p.num_walkers * p.num_ticks
            rate = total_steps / self.time_elapsed if self.time_elapsed > 0 else 0.0
            print(
                f"Simulation completed: {total_steps} steps in {self.time_elapsed:.2f}s "
                f"({rate:.0f} steps/s)"
            )

    def _positions(self) -> np.ndarray:
        return np.array([w.r for w in self.walkers], dtype=np.float64)

    def get_positions(self) -> np.ndarray:
        if not self._has_run:
            raise RuntimeError("Simulation has not been run. Call run() first.")
        return self._positions()

    def get_msd(self) -> np.ndarray:
        if not self._has_run:
            raise RuntimeError("Simulation has not been run. Call run() first.")
        return self.msd


def run_model(params: SurfaceWalkParams | dict | None = None) -> utils.WalkResult:
    """
    Run a surface walk and return a WalkResult.
    """
    sim = SurfaceWalkSimulator(params)
    sim.run()
    p = sim.params
    meta = {
        "model": "surface_walk",
        "step_type": sim.step_type.value,
        "num_walkers": int(p.num_walkers),
        "num_ticks": int(p.num_ticks),
        "step_length": float(p.step_length),
        "radius": float(p.radius),
        "n_per_side": int(p.n_per_side),
        "spacing": float(p.spacing),
        "seed": int(p.seed),
        "independent_sign": bool(p.independent_sign),
        "walker_radius": float(sim.generators[0].get_walker_radius()),
        "off_surface_steps": int(sim.off_surface_steps),
        "time_elapsed": sim.time_elapsed,
    }
    return utils.WalkResult(positions=sim.get_positions(), msd=sim.get_msd(), meta=meta)


__all__ = [
    "SurfaceWalkParams",
    "SurfaceWalkSimulator",
    "Walker",
    "check_membership",
    "build_substrate",
    "run_model",
]
