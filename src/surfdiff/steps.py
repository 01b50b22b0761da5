"""
Step generators for free and surface-constrained random walks.

Every generator produces, per call, the Euclidean displacement a walker
should apply at the current tick. The three variants form a closed family
(see :class:`StepType`) that share one operation set:

    get_step(walker, ...)   displacement as a length-3 float array
    get_border()            characteristic length (the step length)
    get_type()              the variant tag
    get_walker_radius()     finite walker size, step_length / ratio

Each instance owns a private ``numpy.random.Generator``. Instances must not
be shared between walkers that are stepped concurrently.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Union

import numpy as np
from numba import njit

from .geometry import D, Cylinder, Sphere, to_cylindrical

TWO_PI = 2.0 * math.pi
HALF_PI = 0.5 * math.pi

DEFAULT_WALKER_RADIUS_RATIO = 10.0

# Per-variant keys mixed into the seed so that each variant draws from its
# own stream within one run.
SEED_OFFSETS = {
    "free": 1271,
    "spherical_surface": 1272,
    "cylindrical_surface": 1273,
}

_ZERO_OFFSET = np.zeros(D, dtype=np.float64)


class StepType(str, Enum):
    FREE = "free"
    SPHERICAL_SURFACE = "spherical_surface"
    CYLINDRICAL_SURFACE = "cylindrical_surface"


@dataclass
class StepParams:
    """Configuration shared by all step generators."""

    step_length: float = 1.0
    walker_radius_ratio: float = DEFAULT_WALKER_RADIUS_RATIO
    seed: int = 0
    # index of the walker this generator serves; part of the stream key
    stream: int | None = None
    # Draw the angular orientation from a separate fair coin. When False the
    # sign carried by sin(psi) is used and each step costs one draw less.
    independent_sign: bool = True

    def __post_init__(self):
        self.step_length = float(self.step_length)
        self.walker_radius_ratio = float(self.walker_radius_ratio)
        if not math.isfinite(self.step_length) or self.step_length <= 0.0:
            raise ValueError(
                f"step_length must be positive and finite, got {self.step_length}"
            )
        if not math.isfinite(self.walker_radius_ratio) or self.walker_radius_ratio <= 0.0:
            raise ValueError(
                f"walker_radius_ratio must be positive, got {self.walker_radius_ratio}"
            )


def _coerce_params(params) -> StepParams:
    if params is None:
        return StepParams()
    if isinstance(params, StepParams):
        return params
    if isinstance(params, dict):
        return StepParams(**params)
    return StepParams(step_length=params)


###############################################################################
# Kernels
###############################################################################


@njit(cache=True)
def sincos_turns(u: float):
    """
    (cos, sin) of the angle 2*pi*u.

    The argument is reduced to the nearest quarter turn first so that
    multiples of a quarter turn come out exact (cos(pi/2) == 0.0).
    """
    t = 4.0 * u
    k = math.floor(t + 0.5)
    f = (t - k) * HALF_PI
    c = math.cos(f)
    s = math.sin(f)
    quadrant = int(k) % 4
    if quadrant == 0:
        return c, s
    elif quadrant == 1:
        return -s, c
    elif quadrant == 2:
        return -c, -s
    return s, -c


@njit(cache=True)
def planar_step(length: float, radius: float, u: float, flip: bool):
    """
    Draw an isotropic step of fixed length in the unrolled (r*theta, z) plane.

    The unrolling is an isometry, so a step of length ``length`` here is a
    step of the same arclength on the cylinder surface.

    Args:
        length: Arclength of the step
        radius: Cylinder radius
        u: Uniform variate in [0, 1); psi = 2*pi*u is the in-plane direction
        flip: Reverse the angular orientation

    Returns:
        (dz, l_star, d_theta): axial component, arclength along the circle
        and the matching angle increment.
    """
    cos_psi, sin_psi = sincos_turns(u)
    dz = length * cos_psi
    l_star = length * sin_psi
    sgn = 1.0
    if flip:
        sgn = -1.0
    d_theta = sgn * (l_star / radius)
    return dz, l_star, d_theta


@njit(cache=True)
def project_surface_step(theta: float, d_theta: float, radius: float, dz: float):
    """
    Euclidean chord between two points at the same radius separated by
    ``d_theta``, starting from azimuth ``theta``.

        dx = p cos(theta) - q sin(theta)
        dy = p sin(theta) + q cos(theta)

    with p = r(cos(d_theta) - 1) and q = r sin(d_theta).
    """
    p = radius * (math.cos(d_theta) - 1.0)
    q = radius * math.sin(d_theta)
    cos_th = math.cos(theta)
    sin_th = math.sin(theta)
    return p * cos_th - q * sin_th, p * sin_th + q * cos_th, dz


@njit(cache=True)
def free_step(length: float, u: float, v: float):
    """Isotropic 3-D step: cos(polar) uniform in [-1, 1], azimuth 2*pi*v."""
    cos_t = 2.0 * u - 1.0
    sin_t = math.sqrt(max(0.0, 1.0 - cos_t * cos_t))
    c, s = sincos_turns(v)
    return length * sin_t * c, length * sin_t * s, length * cos_t


@njit(cache=True)
def sphere_step(nx: float, ny: float, nz: float, radius: float, length: float, u: float):
    """
    Great-circle step of arclength ``length`` from the point with outward
    unit normal n, heading 2*pi*u in the tangent plane.
    """
    # tangent basis: project the coordinate axis least aligned with n
    if abs(nx) < 0.9:
        ax, ay, az = 1.0, 0.0, 0.0
    else:
        ax, ay, az = 0.0, 1.0, 0.0
    dot = ax * nx + ay * ny + az * nz
    e1x = ax - dot * nx
    e1y = ay - dot * ny
    e1z = az - dot * nz
    norm = math.sqrt(e1x * e1x + e1y * e1y + e1z * e1z)
    e1x /= norm
    e1y /= norm
    e1z /= norm
    e2x = ny * e1z - nz * e1y
    e2y = nz * e1x - nx * e1z
    e2z = nx * e1y - ny * e1x

    c, s = sincos_turns(u)
    tx = c * e1x + s * e2x
    ty = c * e1y + s * e2y
    tz = c * e1z + s * e2z

    alpha = length / radius
    a = radius * (math.cos(alpha) - 1.0)
    b = radius * math.sin(alpha)
    return a * nx + b * tx, a * ny + b * ty, a * nz + b * tz


###############################################################################
# Generators
###############################################################################


class _StepGeneratorBase:
    step_type: StepType

    def __init__(self, params=None, substrate=None, rng=None):
        self.params = _coerce_params(params)
        self.len = self.params.step_length
        self.substrate = substrate
        if rng is None:
            rng = np.random.default_rng(self.stream_key())
        self._rng = rng

    def stream_key(self) -> list:
        """
        Entropy for the private stream: (seed, variant offset[, walker]).

        Kept as a structured key so that no two (seed, walker) pairs share a
        stream, which plain seed arithmetic cannot guarantee.
        """
        key = [self.params.seed, SEED_OFFSETS[self.step_type.value]]
        if self.params.stream is not None:
            key.append(self.params.stream)
        return key

    def get_border(self) -> float:
        return self.len

    def get_type(self) -> StepType:
        return self.step_type

    def get_walker_radius(self) -> float:
        """Finite size for a walker based on step length."""
        return self.len / self.params.walker_radius_ratio

    def _next_double(self) -> float:
        return float(self._rng.random())

    def _next_boolean(self) -> bool:
        return bool(self._rng.random() < 0.5)

    def _substrate_coords(self, walker) -> np.ndarray:
        pos = np.empty(D, dtype=np.float64)
        substrate = getattr(walker, "substrate", None) or self.substrate
        if substrate is None:
            pos[:] = walker.r
        else:
            substrate.get_substrate_coords(walker.r, _ZERO_OFFSET, pos)
        return pos


class FreeStepGenerator(_StepGeneratorBase):
    """Unconstrained isotropic steps of fixed length."""

    step_type = StepType.FREE

    def get_step(self, walker=None, obstacle=None) -> np.ndarray:
        u = self._next_double()
        v = self._next_double()
        return np.array(free_step(self.len, u, v), dtype=np.float64)


class SphericalSurfaceStepGenerator(_StepGeneratorBase):
    """
    Steps whose start and end points lie on the surface of a sphere.

    Assumes the walker is on the sphere; nothing is checked.
    """

    step_type = StepType.SPHERICAL_SURFACE

    def __init__(self, params=None, substrate=None, sphere: Sphere | None = None, rng=None):
        super().__init__(params, substrate, rng)
        if sphere is None and substrate is not None:
            if not substrate.get_spheres():
                raise ValueError("Substrate has no spheres to step on")
            sphere = substrate.get_spheres()[0]
        self.sphere = sphere

    def set_sphere(self, sphere: Sphere) -> None:
        self.sphere = sphere

    def get_step(self, walker, sphere: Sphere | None = None) -> np.ndarray:
        sphere = self.sphere if sphere is None else sphere
        if sphere is None:
            raise RuntimeError("No sphere assigned. Call set_sphere() or pass one to get_step().")

        u = self._next_double()

        pos = self._substrate_coords(walker)
        n = pos - sphere.position
        n /= math.sqrt(n[0] * n[0] + n[1] * n[1] + n[2] * n[2])

        return np.array(
            sphere_step(n[0], n[1], n[2], sphere.radius, self.len, u),
            dtype=np.float64,
        )


class CylindricalSurfaceStepGenerator(_StepGeneratorBase):
    """
    Generates steps such that all beginning and end points are on the
    surface of a cylinder.

    The step length is an arclength on the surface. The returned vectors are
    the Euclidean displacements from start to end point, so they cut through
    the cylinder and do not follow the geodesic between the two points.

    The walker is assumed to be on the cylinder surface. Nothing checks
    this; a walker elsewhere gets a meaningless step.
    """

    step_type = StepType.CYLINDRICAL_SURFACE

    def __init__(
        self, params=None, substrate=None, cylinder: Cylinder | None = None, rng=None
    ):
        super().__init__(params, substrate, rng)
        if cylinder is None and substrate is not None:
            if not substrate.get_cylinders():
                raise ValueError("Substrate has no cylinders to step on")
            cylinder = substrate.get_cylinders()[0]
        self.cylinder = cylinder

    def set_cylinder(self, cylinder: Cylinder) -> None:
        """Re-target the generator at another cylinder."""
        self.cylinder = cylinder

    def get_step(self, walker, cylinder: Cylinder | None = None) -> np.ndarray:
        """
        Step on the surface of ``cylinder`` (or the one set with
        :meth:`set_cylinder`) in substrate Euclidean coordinates.
        """
        cylinder = self.cylinder if cylinder is None else cylinder
        if cylinder is None:
            raise RuntimeError(
                "No cylinder assigned. Call set_cylinder() or pass one to get_step()."
            )
        radius = cylinder.radius

        u = self._next_double()
        flip = self._next_boolean() if self.params.independent_sign else False
        dz, _, d_theta = planar_step(self.len, radius, u, flip)

        # surface coords, assuming the walker is on the surface
        _, theta, _ = to_cylindrical(self._substrate_coords(walker), cylinder)

        return np.array(
            project_surface_step(theta, d_theta, radius, dz), dtype=np.float64
        )


StepGenerator = Union[
    FreeStepGenerator, SphericalSurfaceStepGenerator, CylindricalSurfaceStepGenerator
]


def make_step_generator(
    step_type: StepType | str, params=None, substrate=None, rng=None
) -> StepGenerator:
    """Build the generator variant named by ``step_type``."""
    step_type = StepType(step_type)
    match step_type:
        case StepType.FREE:
            return FreeStepGenerator(params, substrate, rng=rng)
        case StepType.SPHERICAL_SURFACE:
            return SphericalSurfaceStepGenerator(params, substrate, rng=rng)
        case StepType.CYLINDRICAL_SURFACE:
            return CylindricalSurfaceStepGenerator(params, substrate, rng=rng)
    raise ValueError(f"Unknown step type: {step_type}")


__all__ = [
    "StepType",
    "StepParams",
    "StepGenerator",
    "FreeStepGenerator",
    "SphericalSurfaceStepGenerator",
    "CylindricalSurfaceStepGenerator",
    "make_step_generator",
    "sincos_turns",
    "planar_step",
    "project_surface_step",
    "free_step",
    "sphere_step",
    "DEFAULT_WALKER_RADIUS_RATIO",
    "SEED_OFFSETS",
]
