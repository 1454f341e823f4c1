"""Path grouping, spot statistics and warning tallies for traced bundles."""

from __future__ import annotations

from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from optics_core.diagnostics import HitRecord, SurfaceWarning
from optics_core.rays import RayPath


def group_paths_by_light(paths: Iterable[RayPath]) -> Dict[str, List[RayPath]]:
    out: Dict[str, List[RayPath]] = {}
    for p in paths:
        out.setdefault(str(p.light_id), []).append(p)
    return out


def path_lengths(paths: Sequence[RayPath]) -> np.ndarray:
    return np.array([p.length() for p in paths], dtype=float)


def terminal_points(paths: Sequence[RayPath]) -> np.ndarray:
    return np.array([p.points[-1] for p in paths if len(p)], dtype=float).reshape(-1, 3)


def spot_summary(hits: Iterable[HitRecord], surface_id: str, light_id: Optional[str] = None) -> Dict[str, float]:
    """Count, centroid and RMS radius of hits in the surface's local Y-Z plane.

    RMS radius is measured about the centroid. Empty selections return nan
    statistics with ``count == 0``.
    """

    yz = np.array(
        [
            h.local_point[1:3]
            for h in hits
            if h.surface_id == str(surface_id) and (light_id is None or str(h.light_id) == light_id)
        ],
        dtype=float,
    ).reshape(-1, 2)
    if len(yz) == 0:
        return {"count": 0, "centroid_y": float("nan"), "centroid_z": float("nan"), "rms_radius": float("nan")}
    c = yz.mean(axis=0)
    rms = float(np.sqrt(np.mean(np.sum((yz - c) ** 2, axis=1))))
    return {"count": int(len(yz)), "centroid_y": float(c[0]), "centroid_z": float(c[1]), "rms_radius": rms}


def warning_counts(warnings: Iterable[SurfaceWarning]) -> Dict[str, int]:
    """Tally as ``"kind/severity" -> count``."""

    return dict(Counter(f"{w.kind}/{w.severity}" for w in warnings))


def stop_histogram(paths: Iterable[RayPath]) -> Dict[int, int]:
    """Number of paths per terminating surface id; -1 collects open paths."""

    return dict(sorted(Counter(int(p.stops_at) for p in paths).items()))
