"""
Statistics for checking surface walks: step isotropy and diffusivity.
"""
from __future__ import annotations

import numpy as np
from scipy.stats import chisquare, linregress

from .geometry import Cylinder


def tangent_angles(steps: np.ndarray, positions: np.ndarray, cylinder: Cylinder) -> np.ndarray:
    """
    Direction of each step in the local tangent plane of the cylinder.

    Args:
        steps: Displacements of shape (N, 3)
        positions: Start points of shape (N, 3), on the surface
        cylinder: Cylinder the points lie on

    Returns:
        Angles in (-pi, pi], measured from the axial direction towards the
        direction of increasing azimuth.
    """
    steps = np.asarray(steps, dtype=np.float64)
    rel = np.asarray(positions, dtype=np.float64) - cylinder.position
    theta = np.arctan2(rel[:, 1], rel[:, 0])

    # components along e_theta = (-sin, cos, 0) and e_z
    t_theta = -steps[:, 0] * np.sin(theta) + steps[:, 1] * np.cos(theta)
    t_z = steps[:, 2]
    return np.arctan2(t_theta, t_z)


def isotropy_test(angles: np.ndarray, bins: int = 36) -> tuple[float, float]:
    """
    Chi-squared test of the angles against a uniform distribution on
    (-pi, pi].

    Returns:
        (statistic, p_value)
    """
    if bins < 2:
        raise ValueError("Need at least 2 bins")
    counts, _ = np.histogram(angles, bins=bins, range=(-np.pi, np.pi))
    if counts.sum() < 5 * bins:
        raise ValueError(
            f"Too few samples ({counts.sum()}) for {bins} bins; need at least {5 * bins}."
        )
    result = chisquare(counts)
    return float(result.statistic), float(result.pvalue)


def fit_diffusivity(times: np.ndarray, msd: np.ndarray, dims: int = 2) -> tuple[float, float]:
    """
    Fit MSD = 2 * dims * D * t.

    Returns:
        (D, r_squared)
    """
    times = np.asarray(times, dtype=np.float64)
    msd = np.asarray(msd, dtype=np.float64)
    if times.shape != msd.shape or times.size < 3:
        raise ValueError("times and msd must have the same shape with at least 3 points")
    fit = linregress(times, msd)
    return float(fit.slope) / (2.0 * dims), float(fit.rvalue ** 2)
