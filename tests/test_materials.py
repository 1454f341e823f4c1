import pytest

from optics_core.materials import refractive_index, surface_indices
from optics_core.surfaces import create_surface


def test_bk7_dispersion():
    n_f = refractive_index("N-BK7", 486.1)
    n_d = refractive_index("n-bk7", 587.6)
    n_c = refractive_index("N-BK7", 656.3)
    assert n_f > n_d > n_c
    assert abs(n_d - 1.5168) < 1e-4


def test_numeric_and_air_indices():
    assert refractive_index(1.33) == 1.33
    assert refractive_index("air") == 1.0
    assert refractive_index("Vacuum") == 1.0


def test_unknown_glass_suggests_names():
    with pytest.raises(ValueError, match="N-BK7"):
        refractive_index("N-BK8")


def test_surface_indices_prefer_literal_values():
    s = create_surface("s", {"n1": 1.2, "n1_material": "N-BK7", "n2_material": "N-F2"})
    n1, n2 = surface_indices(s, 587.6)
    assert n1 == 1.2
    assert abs(n2 - 1.62004) < 1e-4
    assert surface_indices(create_surface("t", {}), 587.6) == (1.0, 1.0)
