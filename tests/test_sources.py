import numpy as np
import pytest

from optics_core.rays import LightId
from optics_core.sources import LightSource, create_light_source


def test_linear_source_spans_width_across_direction():
    src = LightSource(lid=2, position=[-20, 0, 0], direction=[1, 0, 0], kind="linear", param=(10.0, 0.0), number=5)
    rays = src.generate_rays()
    z = sorted(float(r.position[2]) for r in rays)
    assert np.allclose(z, [-5.0, -2.5, 0.0, 2.5, 5.0])
    assert all(np.allclose(r.position[[0, 1]], [-20.0, 0.0]) for r in rays)
    assert all(np.allclose(r.direction, [1.0, 0.0, 0.0]) for r in rays)
    assert all(r.light_id == LightId(2) for r in rays)


def test_ring_source_lies_on_circle():
    src = LightSource(kind="ring", param=(4.0,), number=12)
    rays = src.generate_rays()
    radii = [np.hypot(r.position[1], r.position[2]) for r in rays]
    assert np.allclose(radii, 4.0)


def test_uniform_source_starts_with_centre_ray():
    rays = LightSource(kind="uniform", param=(6.0,), number=19).generate_rays()
    assert len(rays) == 19
    assert np.allclose(rays[0].position, 0.0)
    assert max(np.hypot(r.position[1], r.position[2]) for r in rays) <= 6.0 + 1e-9


def test_point_source_cone():
    rays = LightSource(kind="point", param=(0.1,), number=50).generate_rays()
    assert all(np.allclose(r.position, 0.0) for r in rays)
    assert all(float(np.dot(r.direction, [1.0, 0.0, 0.0])) >= np.cos(0.1) - 1e-12 for r in rays)


def test_random_patterns_repeat_for_same_seed():
    src = LightSource(kind="gaussian", param=(8.0,), number=20, seed=7)
    first = np.array([r.position for r in src.generate_rays()])
    second = np.array([r.position for r in src.generate_rays()])
    assert np.array_equal(first, second)
    src.reset_seed(8)
    third = np.array([r.position for r in src.generate_rays()])
    assert not np.array_equal(first, third)


def test_source_direction_rotates_the_bundle():
    src = LightSource(direction=[0, 1, 0], kind="ring", param=(2.0,), number=8)
    for r in src.generate_rays():
        assert np.allclose(r.direction, [0.0, 1.0, 0.0])
        assert abs(r.position[1]) < 1e-9


def test_max_rays_truncates():
    assert len(LightSource(number=10).generate_rays(max_rays=3)) == 3


def test_invalid_sources_raise():
    with pytest.raises(ValueError):
        LightSource(kind="laser")
    with pytest.raises(ValueError):
        LightSource(number=0)


def test_create_from_record_with_angles():
    src = create_light_source({"lid": 3, "angles": [90, 0], "type": "Ring", "param": 5, "wavelength": 633})
    assert src.lid == 3
    assert src.kind == "ring"
    assert src.param == (5.0,)
    assert src.wavelength == 633.0
    assert np.allclose(src.direction, [0.0, 1.0, 0.0], atol=1e-12)
    assert np.allclose(create_light_source({}).direction, [1.0, 0.0, 0.0])


def test_identical_point_sources_are_bit_identical():
    a = LightSource(kind="point", param=(0.2,), number=12, seed=99).generate_rays()
    b = LightSource(kind="point", param=(0.2,), number=12, seed=99).generate_rays()
    assert all(np.array_equal(x.direction, y.direction) and np.array_equal(x.position, y.position) for x, y in zip(a, b))
