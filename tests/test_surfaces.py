import numpy as np
import pytest

from optics_core.linalg import CANONICAL_NORMAL, invert, transform_vector
from optics_core.surfaces import (
    DEFAULT_COLOR,
    MODE_COLORS,
    create_assembly_surfaces,
    create_surface,
    number_surfaces,
)


def test_transforms_are_exact_inverses():
    s = create_surface("s", {"shape": "sphere", "radius": -35.0, "normal": [-1, 2, 0.5], "dial": 20}, position=[3, -4, 5])
    assert np.allclose(invert(s.inverse_transform), s.forward_transform, atol=1e-9)
    assert np.allclose(s.forward_transform @ s.inverse_transform, np.eye(4), atol=1e-9)
    p = np.array([1.5, -2.0, 7.0])
    assert np.allclose(s.to_world(s.to_local(p)), p, atol=1e-9)


def test_local_canonical_normal_maps_to_world_normal():
    s = create_surface("s", {"shape": "plano", "normal": [0, 1, 0]}, position=[0, -50, 0])
    assert np.allclose(s.vector_to_world(CANONICAL_NORMAL), [0.0, 1.0, 0.0], atol=1e-9)
    assert np.allclose(s.to_world(np.zeros(3)), [0.0, -50.0, 0.0], atol=1e-9)


def test_vertex_offset_by_radius_along_normal():
    s = create_surface("lens", {"shape": "spherical", "radius": 50.0}, position=[10, 0, 0])
    assert np.allclose(s.center_of_curvature, [60.0, 0.0, 0.0])
    assert np.allclose(s.to_world(np.array([-50.0, 0.0, 0.0])), [10.0, 0.0, 0.0])


def test_dial_rolls_about_normal_without_moving_it():
    plain = create_surface("a", {"shape": "plano", "normal": [-1, 1, 0]})
    rolled = create_surface("b", {"shape": "plano", "normal": [-1, 1, 0], "dial": 90})
    n_plain = transform_vector(plain.inverse_transform, CANONICAL_NORMAL)
    n_rolled = transform_vector(rolled.inverse_transform, CANONICAL_NORMAL)
    assert np.allclose(n_plain, n_rolled, atol=1e-9)
    y_plain = transform_vector(plain.inverse_transform, [0.0, 1.0, 0.0])
    y_rolled = transform_vector(rolled.inverse_transform, [0.0, 1.0, 0.0])
    assert abs(float(np.dot(y_plain, y_rolled))) < 1e-9


def test_angles_give_the_same_normal_as_vector():
    s = create_surface("s", {"shape": "plano", "angles": [0, 0]})
    assert np.allclose(s.normal, CANONICAL_NORMAL)


def test_aliases_defaults_and_clamps():
    s = create_surface("s", {"shape": "plano", "mode": "mirror", "transmission": 1.7})
    assert s.shape == "planar"
    assert s.mode == "reflection"
    assert s.color == MODE_COLORS["reflection"]
    assert s.transmission == 1.0
    d = create_surface("d", {"mode": "diffuse"})
    assert d.shape == "spherical"
    assert d.color == DEFAULT_COLOR
    assert create_surface("c", {"color": "#123456"}).color == "#123456"


def test_assembly_members_share_one_placement():
    assembly = {
        "aid": 7,
        "s2": {"shape": "plano", "relative": [0, 30, 0]},
        "s1": {"shape": "plano"},
    }
    placed = create_assembly_surfaces(assembly, offset=[100, 0, 0], dial=90.0)
    assert [s.id for s in placed] == ["7.s1", "7.s2"]
    assert [s.element_index for s in placed] == [1, 2]
    assert all(s.assembly_id == "7" for s in placed)
    assert np.allclose(placed[0].position, [100.0, 0.0, 0.0], atol=1e-9)
    gap = placed[1].position - placed[0].position
    assert np.isclose(np.linalg.norm(gap), 30.0)
    assert abs(gap[1]) < 1e-9
    for s in placed:
        assert np.allclose(s.to_world(np.zeros(3)), s.position, atol=1e-9)
        assert np.allclose(s.vector_to_world(CANONICAL_NORMAL), s.normal, atol=1e-9)


def test_scalar_relative_offsets_along_x():
    placed = create_assembly_surfaces({"aid": 0, "a1": {"shape": "plano"}, "a2": {"shape": "plano", "relative": 5}})
    assert np.allclose(placed[1].position, [5.0, 0.0, 0.0])


def test_number_surfaces_is_sequential():
    surfaces = [create_surface(str(i), {"shape": "plano"}) for i in range(3)]
    assert [s.numerical_id for s in number_surfaces(surfaces, start=4)] == [4, 5, 6]


@pytest.mark.parametrize("record", [{"normal": [0, 0, 0]}, {"normal": "up"}, {"angles": ["a", 1]}])
def test_malformed_orientation_falls_back_to_canonical_normal(record):
    s = create_surface("s", dict(record, shape="plano"), position=[1, 2, 3])
    assert np.allclose(s.normal, CANONICAL_NORMAL)
    assert np.allclose(invert(s.inverse_transform), s.forward_transform, atol=1e-9)
    assert np.allclose(s.vector_to_world(CANONICAL_NORMAL), CANONICAL_NORMAL, atol=1e-9)
