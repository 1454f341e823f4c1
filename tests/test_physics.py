import numpy as np

from optics_core.diagnostics import TraceConfig, TraceContext
from optics_core.intersect import Intersection
from optics_core.physics import apply_surface_physics, gaussian_direction, resolve_indices, scatter_spread
from optics_core.rays import Ray
from optics_core.surfaces import Surface, create_surface

HIT = Intersection(point=np.zeros(3), normal=np.array([-1.0, 0.0, 0.0]), distance=5.0, valid=True)


def _ray(direction=(1.0, 0.0, 0.0)):
    return Ray([-5.0, 0.0, 0.0], np.array(direction, dtype=float))


def test_refraction_bends_toward_normal():
    theta = np.deg2rad(20.0)
    ray = _ray((np.cos(theta), np.sin(theta), 0.0))
    out = apply_surface_physics(ray, HIT, Surface(id="g", shape="planar", n1=1.0, n2=1.5), TraceContext())
    t = out.transmitted
    assert out.reflected is None and not out.blocked
    assert np.allclose(t.position, 0.0)
    assert abs(np.sin(theta) - 1.5 * t.direction[1]) < 1e-6
    assert np.isclose(t.path_length, 5.0)


def test_reflection_mode():
    out = apply_surface_physics(_ray((1.0, 1.0, 0.0)), HIT, Surface(id="m", shape="planar", mode="reflection"), TraceContext())
    assert np.allclose(out.reflected.direction, np.array([-1.0, 1.0, 0.0]) / np.sqrt(2))
    assert out.transmitted is None


def test_partial_surface_splits_with_transmission():
    out = apply_surface_physics(_ray(), HIT, Surface(id="bs", shape="planar", mode="partial", transmission=0.3), TraceContext())
    assert out.splits
    assert out.transmission == 0.3
    assert np.allclose(out.transmitted.direction, [1.0, 0.0, 0.0])
    assert np.allclose(out.reflected.direction, [-1.0, 0.0, 0.0])
    assert out.transmitted.intensity == out.reflected.intensity == 1.0


def test_absorption_blocks_and_aperture_passes():
    ctx = TraceContext()
    assert apply_surface_physics(_ray(), HIT, Surface(id="d", shape="planar", mode="absorption"), ctx).blocked
    passed = apply_surface_physics(_ray(), HIT, Surface(id="a", shape="planar", mode="aperture"), ctx)
    assert np.allclose(passed.transmitted.direction, [1.0, 0.0, 0.0])
    assert not ctx.warnings


def test_diffuse_without_next_surface_absorbs_with_error():
    ctx = TraceContext(seed=1)
    out = apply_surface_physics(_ray(), HIT, Surface(id="diff", shape="planar", mode="diffuse"), ctx, None)
    assert out.blocked
    assert out.transmitted is None and out.reflected is None
    assert len(ctx.errors()) == 1
    assert ctx.errors()[0].kind == "physics"


def test_diffuse_scatters_toward_next_surface():
    ctx = TraceContext(seed=3)
    diffuser = create_surface("diff", {"shape": "plano", "mode": "diffuse"})
    target = create_surface("det", {"shape": "plano", "mode": "absorption", "semidia": 15.0}, position=[40, 0, 0])
    for _ in range(50):
        out = apply_surface_physics(_ray(), HIT, diffuser, ctx, target)
        d = out.transmitted.direction
        assert d[0] > 0
        assert np.arccos(np.clip(d[0], -1.0, 1.0)) < np.pi / 3
    assert not ctx.warnings


def test_scatter_spread_uses_smallest_aperture():
    cfg = TraceConfig()
    target = Surface(id="t", semidia=15.0, width=10.0, height=40.0)
    expected = np.arctan(5.0 / 40.0) / cfg.diffuse_sigma_count
    assert np.isclose(scatter_spread(40.0, -1.0, target, cfg), expected)
    assert scatter_spread(40.0, 1.0, Surface(id="u"), cfg) == cfg.diffuse_default_spread


def test_gaussian_direction_is_unit_and_reproducible():
    cfg = TraceConfig()
    center = np.array([0.0, 1.0, 1.0])
    a = gaussian_direction(center, 0.05, np.random.default_rng(9), cfg)
    b = gaussian_direction(center, 0.05, np.random.default_rng(9), cfg)
    assert np.allclose(a, b)
    assert np.isclose(np.linalg.norm(a), 1.0)
    assert float(np.dot(a, center / np.linalg.norm(center))) > 0.9


def test_unknown_material_falls_back_with_warning():
    ctx = TraceContext()
    surface = Surface(id="g", n1=1.0, n2_material="UNOBTAINIUM")
    assert resolve_indices(_ray(), surface, ctx) == (1.0, 1.0)
    assert ctx.warnings[0].kind == "physics"


def test_inactive_and_unknown_modes_block():
    ctx = TraceContext()
    for mode in ("inactive", "hologram"):
        out = apply_surface_physics(_ray(), HIT, Surface(id="x", shape="planar", mode=mode), ctx)
        assert out.blocked
        assert out.transmitted is None and out.reflected is None
