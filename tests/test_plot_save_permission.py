from __future__ import annotations

from pathlib import Path

import matplotlib.pyplot as plt

from optics_core.diagnostics import TraceContext
from optics_core.rays import LightId, Ray
from optics_core.surfaces import create_surface
from optics_core.tracer import trace_ray_paths
from plots.ray_plots import _save, plot_all


def test_save_ignores_pdf_permission_error(monkeypatch, tmp_path: Path):
    fig, _ = plt.subplots()

    original_savefig = fig.savefig

    def _patched_savefig(path, *args, **kwargs):
        if str(path).endswith('.pdf'):
            raise PermissionError('locked file')
        return original_savefig(path, *args, **kwargs)

    monkeypatch.setattr(fig, 'savefig', _patched_savefig)

    out = _save(fig, str(tmp_path), 'paths_xy')
    assert out.endswith('paths_xy.png')
    assert (tmp_path / 'paths_xy.png').exists()


def test_plot_all_writes_paths_and_hit_map(tmp_path: Path):
    surfaces = [
        create_surface("lens", {"radius": 50.0, "semidia": 15.0, "n1": 1.0, "n2": 1.5}, [0, 0, 0], 0),
        create_surface("det", {"shape": "planar", "mode": "absorption", "width": 40, "height": 40}, [80, 0, 0], 1),
    ]
    ctx = TraceContext()
    paths = []
    for y in (-5.0, 0.0, 5.0):
        paths.extend(trace_ray_paths(Ray([-10.0, y, 0.0], [1.0, 0.0, 0.0], 532.0, light_id=LightId(1)), surfaces, ctx))
    out = plot_all(paths, surfaces, ctx.hits, str(tmp_path), prefix="case_")
    assert [Path(p).name for p in out] == ["case_paths_xy.png", "case_paths_xz.png", "case_hits_det.png"]
    assert all(Path(p).exists() for p in out)
