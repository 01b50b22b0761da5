"""
Tests for the cylindrical surface step generator and its kernels.
"""

import math

import numpy as np
import pytest

from surfdiff.analysis import isotropy_test, tangent_angles
from surfdiff.geometry import (
    Cylinder,
    cylinder_lattice,
    from_cylindrical,
    radial_distance,
)
from surfdiff.simulation import Walker
from surfdiff.steps import (
    CylindricalSurfaceStepGenerator,
    StepParams,
    StepType,
    planar_step,
    project_surface_step,
    sincos_turns,
)


class FixedDraws:
    """Stand-in random stream returning preset uniform variates."""

    def __init__(self, *values):
        self.values = list(values)

    def random(self):
        return self.values.pop(0)


def _surface_points(cyl, n, seed):
    rng = np.random.default_rng(seed)
    thetas = rng.uniform(-np.pi, np.pi, n)
    zs = rng.uniform(-5.0, 5.0, n)
    return [from_cylindrical(cyl.radius, t, z, cyl) for t, z in zip(thetas, zs)]


def test_sincos_turns_exact_at_quarter_turns():
    assert sincos_turns(0.0) == (1.0, 0.0)
    c, s = sincos_turns(0.25)
    assert c == 0.0 and s == 1.0
    c, s = sincos_turns(0.5)
    assert c == -1.0 and s == 0.0
    c, s = sincos_turns(0.75)
    assert c == 0.0 and s == -1.0


def test_sincos_turns_matches_math():
    for u in np.linspace(0.0, 1.0, 97, endpoint=False):
        c, s = sincos_turns(u)
        assert c == pytest.approx(math.cos(2.0 * math.pi * u), abs=1e-14)
        assert s == pytest.approx(math.sin(2.0 * math.pi * u), abs=1e-14)


def test_planar_step_preserves_arclength():
    length = 0.37
    for u in np.linspace(0.0, 1.0, 101, endpoint=False):
        dz, l_star, d_theta = planar_step(length, 2.0, u, False)
        assert math.hypot(dz, l_star) == pytest.approx(length, rel=1e-14)
        assert d_theta == pytest.approx(l_star / 2.0)


def test_planar_step_flip_reverses_angle_only():
    dz, l_star, d_theta = planar_step(0.5, 1.5, 0.1, False)
    dz_f, l_star_f, d_theta_f = planar_step(0.5, 1.5, 0.1, True)

    assert dz_f == dz
    assert l_star_f == l_star
    assert d_theta_f == -d_theta


def test_projector_is_exact_chord():
    radius = 1.3
    for theta in np.linspace(-3.0, 3.0, 13):
        for d_theta in (-0.4, -0.01, 0.0, 0.02, 0.7):
            dx, dy, dz = project_surface_step(theta, d_theta, radius, 0.25)
            start = np.array([radius * math.cos(theta), radius * math.sin(theta)])
            end = start + [dx, dy]
            assert math.hypot(*end) == pytest.approx(radius, abs=1e-12)
            assert math.atan2(end[1], end[0]) == pytest.approx(
                math.atan2(math.sin(theta + d_theta), math.cos(theta + d_theta)), abs=1e-12
            )
            assert dz == 0.25


def test_pure_angular_step_scenario():
    length = 0.3
    cyl = Cylinder([0.0, 0.0, 0.0], 2.0)
    # psi = pi/2, then a coin draw >= 0.5 keeps the sign positive
    gen = CylindricalSurfaceStepGenerator(length, cylinder=cyl, rng=FixedDraws(0.25, 0.9))

    step = gen.get_step(Walker([2.0, 0.0, 0.0]))

    d_theta = length / 2.0
    p = 2.0 * (math.cos(d_theta) - 1.0)
    q = 2.0 * math.sin(d_theta)
    assert step[2] == 0.0
    assert step[0] == pytest.approx(p, rel=1e-12)
    assert step[1] == pytest.approx(q, rel=1e-12)


def test_coin_flip_reverses_azimuthal_direction():
    cyl = Cylinder([0.0, 0.0, 0.0], 2.0)
    gen = CylindricalSurfaceStepGenerator(0.3, cylinder=cyl, rng=FixedDraws(0.25, 0.1))

    step = gen.get_step(Walker([2.0, 0.0, 0.0]))

    assert step[1] == pytest.approx(-2.0 * math.sin(0.15), rel=1e-12)


def test_signed_psi_consumes_one_draw():
    cyl = Cylinder([0.0, 0.0, 0.0], 2.0)
    params = StepParams(step_length=0.3, independent_sign=False)
    draws = FixedDraws(0.75, 0.25)
    gen = CylindricalSurfaceStepGenerator(params, cylinder=cyl, rng=draws)

    first = gen.get_step(Walker([2.0, 0.0, 0.0]))
    second = gen.get_step(Walker([2.0, 0.0, 0.0]))

    assert first[1] == pytest.approx(-2.0 * math.sin(0.15), rel=1e-12)
    assert second[1] == pytest.approx(2.0 * math.sin(0.15), rel=1e-12)
    assert draws.values == []


@pytest.mark.parametrize("independent_sign", [True, False])
def test_steps_stay_on_surface(independent_sign):
    cyl = Cylinder([3.0, -1.0, 0.5], 1.7)
    params = StepParams(step_length=0.4, seed=11, independent_sign=independent_sign)
    gen = CylindricalSurfaceStepGenerator(params, cylinder=cyl)

    for point in _surface_points(cyl, 2000, seed=5):
        step = gen.get_step(Walker(point))
        assert radial_distance(point + step, cyl) == pytest.approx(cyl.radius, abs=1e-9)


def test_long_walk_stays_on_surface():
    cyl = Cylinder([0.0, 0.0, 0.0], 2.0)
    gen = CylindricalSurfaceStepGenerator(StepParams(step_length=0.25, seed=3), cylinder=cyl)
    walker = Walker([2.0, 0.0, 0.0])

    for _ in range(5000):
        walker.make_step(gen.get_step(walker))

    assert radial_distance(walker.r, cyl) == pytest.approx(2.0, abs=1e-9)


def test_chord_shorter_than_arclength():
    cyl = Cylinder([0.0, 0.0, 0.0], 0.5)
    length = 0.4
    gen = CylindricalSurfaceStepGenerator(StepParams(step_length=length, seed=2), cylinder=cyl)

    norms = [
        np.linalg.norm(gen.get_step(Walker(p)))
        for p in _surface_points(cyl, 500, seed=9)
    ]

    assert max(norms) <= length + 1e-12
    assert min(norms) < length


def test_same_seed_gives_identical_steps():
    cyl = Cylinder([0.0, 0.0, 0.0], 2.0)
    points = _surface_points(cyl, 200, seed=1)
    gen_a = CylindricalSurfaceStepGenerator(StepParams(step_length=0.1, seed=42), cylinder=cyl)
    gen_b = CylindricalSurfaceStepGenerator(StepParams(step_length=0.1, seed=42), cylinder=cyl)
    gen_c = CylindricalSurfaceStepGenerator(StepParams(step_length=0.1, seed=43), cylinder=cyl)

    steps_a = np.array([gen_a.get_step(Walker(p)) for p in points])
    steps_b = np.array([gen_b.get_step(Walker(p)) for p in points])
    steps_c = np.array([gen_c.get_step(Walker(p)) for p in points])

    assert np.array_equal(steps_a, steps_b)
    assert not np.array_equal(steps_a, steps_c)


def test_smallest_step_length_gives_vanishing_step():
    tiny = np.nextafter(0.0, 1.0)
    cyl = Cylinder([0.0, 0.0, 0.0], 2.0)
    gen = CylindricalSurfaceStepGenerator(tiny, cylinder=cyl)

    step = gen.get_step(Walker([0.0, 2.0, 1.0]))

    assert np.all(np.isfinite(step))
    assert np.all(np.abs(step) < 1e-300)


@pytest.mark.parametrize("independent_sign", [True, False])
def test_tangent_directions_are_isotropic(independent_sign):
    cyl = Cylinder([0.0, 0.0, 0.0], 2.0)
    params = StepParams(step_length=0.01, seed=2024, independent_sign=independent_sign)
    gen = CylindricalSurfaceStepGenerator(params, cylinder=cyl)
    points = _surface_points(cyl, 12_000, seed=17)

    steps = np.array([gen.get_step(Walker(p)) for p in points])
    angles = tangent_angles(steps, np.array(points), cyl)

    _, p_value = isotropy_test(angles, bins=36)
    assert p_value > 1e-3


def test_contract_accessors():
    params = StepParams(step_length=0.5, walker_radius_ratio=4.0)
    gen = CylindricalSurfaceStepGenerator(params)

    assert gen.get_border() == 0.5
    assert gen.get_walker_radius() == pytest.approx(0.125)
    assert gen.get_type() is StepType.CYLINDRICAL_SURFACE


def test_missing_cylinder_fails_fast():
    gen = CylindricalSurfaceStepGenerator(0.5)

    with pytest.raises(RuntimeError):
        gen.get_step(Walker([1.0, 0.0, 0.0]))


@pytest.mark.parametrize("length", [0.0, -0.1, float("nan"), float("inf")])
def test_invalid_step_length_rejected(length):
    with pytest.raises(ValueError):
        CylindricalSurfaceStepGenerator(length)


def test_invalid_walker_radius_ratio_rejected():
    with pytest.raises(ValueError):
        StepParams(step_length=1.0, walker_radius_ratio=0.0)


def test_substrate_constructor_uses_first_cylinder():
    substrate = cylinder_lattice(2, 10.0, 2.0)

    gen = CylindricalSurfaceStepGenerator(StepParams(step_length=0.1), substrate)

    assert gen.cylinder is substrate.get_cylinders()[0]


def test_set_cylinder_retargets_generator():
    substrate = cylinder_lattice(2, 10.0, 2.0)
    first, second = substrate.get_cylinders()[:2]
    gen = CylindricalSurfaceStepGenerator(StepParams(step_length=0.2, seed=4), substrate)
    walker = Walker(from_cylindrical(2.0, 0.3, 0.0, second), substrate)

    gen.set_cylinder(second)
    for _ in range(100):
        walker.make_step(gen.get_step(walker))

    assert gen.cylinder is second
    assert radial_distance(walker.r, second) == pytest.approx(2.0, abs=1e-9)
    assert radial_distance(walker.r, first) > 2.0


def test_explicit_cylinder_overrides_held_one():
    substrate = cylinder_lattice(2, 10.0, 2.0)
    second = substrate.get_cylinders()[1]
    gen = CylindricalSurfaceStepGenerator(StepParams(step_length=0.2, seed=4), substrate)
    walker = Walker(from_cylindrical(2.0, -1.0, 3.0, second), substrate)

    walker.make_step(gen.get_step(walker, second))

    assert gen.cylinder is substrate.get_cylinders()[0]
    assert radial_distance(walker.r, second) == pytest.approx(2.0, abs=1e-9)


def test_periodic_images_use_substrate_frame():
    substrate = cylinder_lattice(1, 10.0, 2.0)
    cyl = substrate.get_cylinders()[0]
    gen = CylindricalSurfaceStepGenerator(StepParams(step_length=0.3, seed=8), substrate)
    # same surface point, two cells over in x and one back in y
    walker = Walker(from_cylindrical(2.0, 0.9, 0.0, cyl) + [20.0, -10.0, 0.0], substrate)

    walker.make_step(gen.get_step(walker))

    assert radial_distance(walker.substrate_coords(), cyl) == pytest.approx(2.0, abs=1e-9)
