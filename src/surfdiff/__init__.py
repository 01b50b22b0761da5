"""
surfdiff - surface-constrained random steps for Monte Carlo diffusion

Step generators for walkers that diffuse freely or stay on the surface of
cylindrical and spherical obstacles, plus a small driver to run them:
- CylindricalSurfaceStepGenerator: fixed-arclength steps on a cylinder
- SphericalSurfaceStepGenerator: fixed-arclength steps on a sphere
- FreeStepGenerator: isotropic steps in 3-D
- SurfaceWalkSimulator: tick-by-tick driver, one generator per walker
"""

from .geometry import Cylinder, ObstacleSubstrate, Sphere, cylinder_lattice, to_cylindrical
from .steps import (
    CylindricalSurfaceStepGenerator,
    FreeStepGenerator,
    SphericalSurfaceStepGenerator,
    StepGenerator,
    StepParams,
    StepType,
    make_step_generator,
)
from .simulation import SurfaceWalkParams, SurfaceWalkSimulator, Walker
from . import analysis, utils

__all__ = [
    # Geometry
    "Cylinder",
    "Sphere",
    "ObstacleSubstrate",
    "cylinder_lattice",
    "to_cylindrical",
    # Step generators
    "StepType",
    "StepParams",
    "StepGenerator",
    "FreeStepGenerator",
    "SphericalSurfaceStepGenerator",
    "CylindricalSurfaceStepGenerator",
    "make_step_generator",
    # Driver
    "SurfaceWalkParams",
    "SurfaceWalkSimulator",
    "Walker",
    # Utilities
    "analysis",
    "utils",
]
