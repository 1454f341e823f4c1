"""Trace configuration, surface warnings and hit recording.

A ``TraceContext`` is the only mutable state a trace touches. Give each
independent trace its own context; appends are lock-protected so a context may
also be shared by worker threads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
import time
from typing import TYPE_CHECKING, Dict, List, Optional

import numpy as np
from numpy.typing import NDArray

from optics_core.materials import IndexLookup, surface_indices
from optics_core.rays import LightId

if TYPE_CHECKING:
    from optics_core.rays import Ray
    from optics_core.surfaces import Surface

logger = logging.getLogger(__name__)

Vector = NDArray[np.float64]

WARNING_KINDS = ("geometry", "ray_anomaly", "physics", "aperture")
SEVERITIES = ("info", "warning", "error")
_LOG_LEVELS = {"info": logging.INFO, "warning": logging.WARNING, "error": logging.ERROR}


@dataclass(frozen=True)
class TraceConfig:
    eps: float = 1e-10
    max_distance: float = 1000.0
    default_semidia: float = 10.0
    default_cylinder_extent: float = 20.0
    aperture_tolerance: float = 1e-12
    extension_fraction: float = 0.1
    fallback_extension: float = 50.0
    diffuse_sigma_count: float = 3.0
    diffuse_default_spread: float = np.pi / 24
    diffuse_max_angle: float = np.pi / 6
    diffuse_min_alignment: float = 0.1


@dataclass(frozen=True)
class SurfaceWarning:
    surface_id: str
    kind: str
    message: str
    severity: str = "warning"
    timestamp: float = 0.0


@dataclass(frozen=True, eq=False)
class HitRecord:
    light_id: LightId
    wavelength: float
    surface_id: str
    numerical_id: Optional[int]
    point: Vector
    normal: Vector
    local_point: Vector
    distance: float
    blocked: bool
    incoming: Vector
    outgoing: Optional[Vector] = None


@dataclass
class TraceContext:
    """Collector for warnings and hits plus the per-trace configuration and RNG."""

    config: TraceConfig = field(default_factory=TraceConfig)
    seed: Optional[int] = None
    collect_hits: bool = True
    index_lookup: IndexLookup = surface_indices
    warnings: List[SurfaceWarning] = field(default_factory=list)
    hits: List[HitRecord] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.rng = np.random.default_rng(self.seed)
        self._lock = threading.Lock()

    def warn(self, surface: "Surface", message: str, kind: str = "ray_anomaly", severity: str = "warning") -> SurfaceWarning:
        if kind not in WARNING_KINDS:
            raise ValueError(f"Unknown warning kind: {kind}")
        if severity not in SEVERITIES:
            raise ValueError(f"Unknown warning severity: {severity}")
        w = SurfaceWarning(surface_id=str(surface.id), kind=kind, message=message, severity=severity, timestamp=time.time())
        with self._lock:
            self.warnings.append(w)
        logger.log(_LOG_LEVELS[severity], "surface %s [%s]: %s", surface.id, kind, message)
        return w

    def record_hit(
        self,
        ray: "Ray",
        surface: "Surface",
        point: Vector,
        normal: Vector,
        local_point: Vector,
        distance: float,
        blocked: bool,
        outgoing: Optional[Vector] = None,
    ) -> None:
        if not self.collect_hits:
            return
        rec = HitRecord(
            light_id=ray.light_id,
            wavelength=ray.wavelength,
            surface_id=str(surface.id),
            numerical_id=surface.numerical_id,
            point=np.asarray(point, dtype=float),
            normal=np.asarray(normal, dtype=float),
            local_point=np.asarray(local_point, dtype=float),
            distance=float(distance),
            blocked=bool(blocked),
            incoming=np.asarray(ray.direction, dtype=float),
            outgoing=None if outgoing is None else np.asarray(outgoing, dtype=float),
        )
        with self._lock:
            self.hits.append(rec)

    def spawn(self, seed: Optional[int] = None) -> "TraceContext":
        """Empty context sharing this context's configuration and lookup."""

        return TraceContext(config=self.config, seed=seed, collect_hits=self.collect_hits, index_lookup=self.index_lookup)

    def merge(self, other: "TraceContext") -> None:
        with self._lock:
            self.warnings.extend(other.warnings)
            self.hits.extend(other.hits)

    def clear(self) -> None:
        with self._lock:
            self.warnings.clear()
            self.hits.clear()

    def warnings_for(self, surface_id: str) -> List[SurfaceWarning]:
        return [w for w in self.warnings if w.surface_id == str(surface_id)]

    def errors(self) -> List[SurfaceWarning]:
        return [w for w in self.warnings if w.severity == "error"]

    def hits_by_surface(self) -> Dict[str, List[HitRecord]]:
        out: Dict[str, List[HitRecord]] = {}
        for h in self.hits:
            out.setdefault(h.surface_id, []).append(h)
        return out
