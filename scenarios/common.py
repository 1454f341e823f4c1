"""Common scenario helpers."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Tuple

from optics_core.diagnostics import TraceConfig, TraceContext
from optics_core.rays import RayPath
from optics_core.system import OpticalSystem
from optics_core.tracer import trace_system


def detector(sid: int, size: float = 60.0) -> Dict[str, Any]:
    return {"sid": sid, "shape": "plano", "mode": "absorption", "width": size, "height": size}


def beam(lid: int, wavelength: float = 587.6, position=(-20.0, 0.0, 0.0), **extra: Any) -> Dict[str, Any]:
    record = {"lid": lid, "position": list(position), "vector": [1, 0, 0], "wavelength": wavelength, "number": 7, "type": "linear", "param": [10, 0]}
    record.update(extra)
    return record


def make_context(params: Mapping[str, Any]) -> TraceContext:
    return TraceContext(config=TraceConfig(), seed=int(params.get("seed", 0)))


def trace_case(system: OpticalSystem, params: Mapping[str, Any]) -> Tuple[List[RayPath], TraceContext]:
    ctx = make_context(params)
    paths = trace_system(system, ctx, max_workers=params.get("max_workers"))
    return paths, ctx
