"""
Obstacle geometry for surface-constrained walks.

Cylinders are infinite and parallel to the z axis; ``position`` is any point
on the axis (conventionally the one with z = 0). Spheres are described by
their centre. Both are immutable once built and may be shared read-only
between any number of walkers and step generators.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Sequence, Tuple

import numpy as np

D = 3  # dimensionality of the embedding space


def _as_point(position) -> np.ndarray:
    point = np.asarray(position, dtype=np.float64).reshape(-1)
    if point.shape != (D,):
        raise ValueError(f"position must have {D} components, got {point.shape[0]}")
    point.setflags(write=False)
    return point


def _check_radius(radius: float) -> float:
    radius = float(radius)
    if not math.isfinite(radius) or radius <= 0.0:
        raise ValueError(f"radius must be positive and finite, got {radius}")
    return radius


@dataclass(frozen=True, eq=False)
class Cylinder:
    """Infinite circular cylinder with its axis parallel to z."""

    position: np.ndarray
    radius: float

    def __post_init__(self):
        object.__setattr__(self, "position", _as_point(self.position))
        object.__setattr__(self, "radius", _check_radius(self.radius))

    def get_position(self) -> np.ndarray:
        return self.position

    def get_radius(self) -> float:
        return self.radius


@dataclass(frozen=True, eq=False)
class Sphere:
    """Sphere given by centre and radius."""

    position: np.ndarray
    radius: float

    def __post_init__(self):
        object.__setattr__(self, "position", _as_point(self.position))
        object.__setattr__(self, "radius", _check_radius(self.radius))

    def get_position(self) -> np.ndarray:
        return self.position

    def get_radius(self) -> float:
        return self.radius


###############################################################################
# Coordinate mapping
###############################################################################


def to_cylindrical(point, cylinder: Cylinder) -> Tuple[float, float, float]:
    """
    Convert substrate coordinates into cylindrical coordinates about the axis
    of ``cylinder``.

    Returns:
        (r, theta, z) with r the distance from the axis, theta = atan2(y', x')
        in (-pi, pi] and z the signed axial coordinate, all measured from
        ``cylinder.position``.

    No check is made that the point lies on the surface.
    """
    P = cylinder.position
    x = float(point[0]) - P[0]
    y = float(point[1]) - P[1]
    z = float(point[2]) - P[2]
    return math.sqrt(x * x + y * y), math.atan2(y, x), z


def from_cylindrical(r: float, theta: float, z: float, cylinder: Cylinder) -> np.ndarray:
    """Inverse of :func:`to_cylindrical`."""
    P = cylinder.position
    return np.array(
        [P[0] + r * math.cos(theta), P[1] + r * math.sin(theta), P[2] + z],
        dtype=np.float64,
    )


def radial_distance(point, cylinder: Cylinder) -> float:
    return to_cylindrical(point, cylinder)[0]


def on_surface(point, obstacle: Cylinder | Sphere, tol: float = 1e-9) -> bool:
    """Membership test used by the driver after a step has been applied."""
    if isinstance(obstacle, Cylinder):
        dist = radial_distance(point, obstacle)
    elif isinstance(obstacle, Sphere):
        dist = float(np.linalg.norm(np.asarray(point, dtype=np.float64) - obstacle.position))
    else:
        raise TypeError(f"Unsupported obstacle type: {type(obstacle).__name__}")
    return abs(dist - obstacle.radius) <= tol * max(1.0, obstacle.radius)


###############################################################################
# Substrate
###############################################################################


@dataclass
class ObstacleSubstrate:
    """
    Collection of obstacles, optionally inside a periodic square cell.

    When ``size`` is set, substrate coordinates are wrapped into
    ``[0, size)`` in x and y. The z direction is never wrapped since the
    cylinders are infinite along it.
    """

    cylinders: Sequence[Cylinder] = field(default_factory=tuple)
    spheres: Sequence[Sphere] = field(default_factory=tuple)
    size: float | None = None

    def __post_init__(self):
        self.cylinders = tuple(self.cylinders)
        self.spheres = tuple(self.spheres)
        if self.size is not None and self.size <= 0.0:
            raise ValueError("size must be positive")

    def get_cylinders(self) -> Tuple[Cylinder, ...]:
        return self.cylinders

    def get_spheres(self) -> Tuple[Sphere, ...]:
        return self.spheres

    def get_substrate_coords(self, r, offset, out: np.ndarray) -> np.ndarray:
        """Write the substrate-frame position of ``r + offset`` into ``out``."""
        for i in range(D):
            out[i] = r[i] + offset[i]
        if self.size is not None:
            for i in range(2):
                out[i] = out[i] % self.size
        return out


def cylinder_lattice(
    n_per_side: int, spacing: float, radius: float
) -> ObstacleSubstrate:
    """
    Square array of parallel cylinders in a periodic cell of side
    ``n_per_side * spacing``.
    """
    if n_per_side < 1:
        raise ValueError("n_per_side must be at least 1")
    if 2.0 * radius >= spacing:
        raise ValueError(
            f"cylinders of radius {radius} overlap at spacing {spacing}"
        )
    cylinders = []
    for i in range(n_per_side):
        for j in range(n_per_side):
            centre = [(i + 0.5) * spacing, (j + 0.5) * spacing, 0.0]
            cylinders.append(Cylinder(centre, radius))
    return ObstacleSubstrate(cylinders=cylinders, size=n_per_side * spacing)


__all__ = [
    "Cylinder",
    "Sphere",
    "ObstacleSubstrate",
    "cylinder_lattice",
    "to_cylindrical",
    "from_cylindrical",
    "radial_distance",
    "on_surface",
]
