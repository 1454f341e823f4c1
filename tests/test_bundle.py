import numpy as np

from optics_core.diagnostics import TraceContext
from optics_core.sources import LightSource
from optics_core.surfaces import create_surface
from optics_core.tracer import trace_bundle


def _scene():
    diffuser = create_surface("diff", {"shape": "planar", "mode": "diffuse", "semidia": 10.0}, [0, 0, 0], 0)
    det = create_surface("det", {"shape": "planar", "mode": "absorption", "semidia": 15.0}, [40, 0, 0], 1)
    rays = LightSource(position=[-10, 0, 0], kind="ring", param=(4.0,), number=16).generate_rays()
    return rays, [diffuser, det]


def _snapshot(paths, ctx):
    return (
        [p.points.tolist() for p in paths],
        [str(p.light_id) for p in paths],
        [(w.surface_id, w.message) for w in ctx.warnings],
        [h.point.tolist() for h in ctx.hits],
    )


def test_parallel_trace_matches_serial():
    rays, surfaces = _scene()
    serial_ctx = TraceContext(seed=42)
    serial = trace_bundle(rays, surfaces, serial_ctx)
    parallel_ctx = TraceContext(seed=42)
    parallel = trace_bundle(rays, surfaces, parallel_ctx, max_workers=4)
    assert _snapshot(serial, serial_ctx) == _snapshot(parallel, parallel_ctx)
    assert len(serial) == len(rays)


def test_seed_controls_scatter():
    rays, surfaces = _scene()
    a = trace_bundle(rays, surfaces, TraceContext(seed=1))
    b = trace_bundle(rays, surfaces, TraceContext(seed=1))
    c = trace_bundle(rays, surfaces, TraceContext(seed=2))
    ends = lambda paths: np.array([p.points[-1] for p in paths])
    assert np.array_equal(ends(a), ends(b))
    assert not np.allclose(ends(a), ends(c))


def test_hit_collection_can_be_disabled():
    rays, surfaces = _scene()
    ctx = TraceContext(seed=1, collect_hits=False)
    trace_bundle(rays, surfaces, ctx)
    assert ctx.hits == []
