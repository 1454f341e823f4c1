import numpy as np

from optics_core.rays import LightId, Ray, RayPath, reflect, refract


def test_light_id_lineage():
    root = LightId(1)
    child = root.branch(3)
    grandchild = child.branch(5)
    assert str(root) == "1"
    assert str(grandchild) == "1.3.5"
    assert LightId.parse("1.3.5") == grandchild
    assert root.is_ancestor_of(grandchild)
    assert child.is_ancestor_of(grandchild)
    assert not grandchild.is_ancestor_of(child)
    assert not LightId(2).is_ancestor_of(child)
    assert grandchild.depth == 2


def test_light_id_branches_do_not_collide_on_multi_digit_surfaces():
    assert LightId(1).branch(12) != LightId(1).branch(1).branch(2)


def test_snell_law_holds():
    theta_i = np.deg2rad(30.0)
    d = np.array([np.cos(theta_i), np.sin(theta_i), 0.0])
    n = np.array([-1.0, 0.0, 0.0])
    t, tir = refract(d, n, 1.0, 1.5)
    assert not tir
    sin_t = np.linalg.norm(np.cross(t, -n))
    assert abs(1.0 * np.sin(theta_i) - 1.5 * sin_t) < 1e-6
    assert t[0] > 0


def test_refract_flips_normal_facing_along_ray():
    d = np.array([1.0, 0.2, 0.0])
    t_a, _ = refract(d, np.array([-1.0, 0.0, 0.0]), 1.0, 1.5)
    t_b, _ = refract(d, np.array([1.0, 0.0, 0.0]), 1.0, 1.5)
    assert np.allclose(t_a, t_b)


def test_total_internal_reflection_returns_reflection():
    theta_i = np.deg2rad(60.0)
    d = np.array([np.cos(theta_i), np.sin(theta_i), 0.0])
    n = np.array([-1.0, 0.0, 0.0])
    t, tir = refract(d, n, 1.5, 1.0)
    assert tir
    assert np.allclose(t, reflect(d, n))


def test_reflection_is_symmetric_about_normal():
    d = np.array([1.0, -0.5, 0.25])
    n = np.array([-1.0, 0.0, 0.0])
    r = reflect(d, n)
    d_hat = d / np.linalg.norm(d)
    assert np.isclose(np.dot(r, n), -np.dot(d_hat, n))
    assert np.allclose(np.cross(r, n), np.cross(d_hat, n))


def test_ray_path_length_and_stop():
    r = Ray(np.zeros(3), np.array([1.0, 0.0, 0.0]), light_id=LightId(1))
    moved = r.moved_to(np.array([3.0, 4.0, 0.0]))
    assert np.isclose(moved.path_length, 5.0)
    assert np.allclose(moved.direction, [1.0, 0.0, 0.0])
    path = RayPath(LightId(1), [r, moved.stopped_at(2)])
    assert np.isclose(path.length(), 5.0)
    assert path.stops_at == 2
    assert path.rays[-1].terminated
