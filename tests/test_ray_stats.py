import math

import numpy as np

from analysis.ray_stats import group_paths_by_light, path_lengths, spot_summary, stop_histogram, terminal_points, warning_counts
from optics_core.diagnostics import HitRecord, SurfaceWarning
from optics_core.rays import LightId, Ray, RayPath


def _path(lid: LightId, end, stop: int) -> RayPath:
    return RayPath(lid, [Ray([0.0, 0.0, 0.0], [1.0, 0.0, 0.0]), Ray(end, [1.0, 0.0, 0.0], stops_at=stop)])


def _hit(surface_id: str, y: float, z: float, lid: LightId = LightId(1)) -> HitRecord:
    return HitRecord(
        light_id=lid,
        wavelength=532.0,
        surface_id=surface_id,
        numerical_id=0,
        point=np.array([10.0, y, z]),
        normal=np.array([-1.0, 0.0, 0.0]),
        local_point=np.array([0.0, y, z]),
        distance=10.0,
        blocked=True,
        incoming=np.array([1.0, 0.0, 0.0]),
    )


def test_grouping_lengths_and_stops():
    paths = [_path(LightId(1), [3.0, 4.0, 0.0], 2), _path(LightId(1, (0,)), [6.0, 8.0, 0.0], 2), _path(LightId(1), [1.0, 0.0, 0.0], -1)]
    groups = group_paths_by_light(paths)
    assert sorted(groups) == ["1", "1.0"]
    assert len(groups["1"]) == 2
    assert np.allclose(path_lengths(paths), [5.0, 10.0, 1.0])
    assert terminal_points(paths).shape == (3, 3)
    assert stop_histogram(paths) == {-1: 1, 2: 2}


def test_spot_summary_centroid_and_rms():
    hits = [_hit("det", 1.0, 0.0), _hit("det", -1.0, 0.0), _hit("det", 3.0, 2.0, LightId(2)), _hit("other", 9.0, 9.0)]
    spot = spot_summary(hits, "det", light_id="1")
    assert spot["count"] == 2
    assert spot["centroid_y"] == 0.0
    assert np.isclose(spot["rms_radius"], 1.0)
    assert spot_summary(hits, "det")["count"] == 3
    empty = spot_summary(hits, "nowhere")
    assert empty["count"] == 0
    assert math.isnan(empty["rms_radius"])


def test_warning_counts_by_kind_and_severity():
    warnings = [
        SurfaceWarning("a", "physics", "m1", "error"),
        SurfaceWarning("a", "physics", "m2", "error"),
        SurfaceWarning("b", "aperture", "m3", "info"),
    ]
    assert warning_counts(warnings) == {"physics/error": 2, "aperture/info": 1}
