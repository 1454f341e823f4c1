"""HDF5 schema for traced ray paths of validation runs.

The schema stores multiple scenarios and multiple sweep cases per scenario.

Structure:
    /
      meta                       (attrs: created_at, units, engine)
      scenarios/{scenario_id}/cases/{case_id}/
          params_json            (scalar utf-8 JSON)
          paths/
              light_id           (L,) variable-length UTF-8 ("1", "1.3", ...)
              wavelength_nm      (L,)
              intensity          (L,)
              stops_at           (L,) int64, -1 when unterminated
              n_points           (L,) int64
              positions          (L,Pmax,3) float64, nan padded
              directions         (L,Pmax,3) float64, nan padded
              path_length        (L,Pmax) float64, nan padded
          warnings/
              surface_id, kind, message, severity   (W,) UTF-8
              timestamp          (W,)
          hits/
              light_id, surface_id                  (H,) UTF-8
              numerical_id       (H,) int64, -1 when unnumbered
              wavelength_nm, distance               (H,)
              blocked            (H,) bool
              point, normal, local_point, incoming, outgoing   (H,3), outgoing nan when absent

Example:
    >>> from optics_core.rays import LightId, Ray, RayPath
    >>> path = RayPath(LightId(1), [Ray([0.0, 0, 0], [1.0, 0, 0]), Ray([5.0, 0, 0], [1.0, 0, 0])])
    >>> payload = {"S1": {"case0": {"params": {"n2": 1.5}, "paths": [path]}}}
    >>> save_trace_hdf5("/tmp/trace_example.h5", payload)
    >>> loaded, meta = load_trace_hdf5("/tmp/trace_example.h5")
    >>> list(loaded.keys()), str(loaded["S1"]["case0"].paths[0].light_id)
    (['S1'], '1')
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import h5py
import numpy as np

from optics_core.diagnostics import HitRecord, SurfaceWarning, TraceContext
from optics_core.rays import UNTERMINATED, LightId, Ray, RayPath


@dataclass
class CaseData:
    params: Dict[str, Any]
    paths: List[RayPath]
    warnings: List[SurfaceWarning] = field(default_factory=list)
    hits: List[HitRecord] = field(default_factory=list)


@dataclass
class Hdf5Meta:
    created_at: str
    units: str
    engine: str


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (np.integer, np.floating)):
        return obj.item()
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, LightId):
        return str(obj)
    raise TypeError(f"Unsupported JSON type: {type(obj)}")


def _pad_2d_float(rows: Sequence[Sequence[float]], pad_value: float = np.nan) -> np.ndarray:
    width = max((len(r) for r in rows), default=0)
    out = np.full((len(rows), width), pad_value, dtype=np.float64)
    for i, row in enumerate(rows):
        out[i, : len(row)] = np.asarray(row, dtype=np.float64)
    return out


def _pad_3d_float(rows: Sequence[np.ndarray], pad_value: float = np.nan) -> np.ndarray:
    width = max((len(r) for r in rows), default=0)
    out = np.full((len(rows), width, 3), pad_value, dtype=np.float64)
    for i, row in enumerate(rows):
        if len(row):
            out[i, : len(row)] = np.asarray(row, dtype=np.float64).reshape(-1, 3)
    return out


def _vec_rows(values: Sequence[Optional[np.ndarray]]) -> np.ndarray:
    return np.array(
        [np.full(3, np.nan) if v is None else np.asarray(v, dtype=np.float64) for v in values],
        dtype=np.float64,
    ).reshape(-1, 3)


def _str_dataset(group: h5py.Group, name: str, values: Sequence[str]) -> None:
    dt = h5py.string_dtype(encoding="utf-8")
    group.create_dataset(name, data=np.asarray([str(v) for v in values], dtype=object), dtype=dt)


def _read_str(group: h5py.Group, name: str) -> List[str]:
    return [s.decode() if isinstance(s, bytes) else str(s) for s in group[name][()]]


def _as_case(case: CaseData | Mapping[str, Any]) -> CaseData:
    if isinstance(case, CaseData):
        return case
    ctx = case.get("context")
    return CaseData(
        params=dict(case.get("params", {})),
        paths=list(case["paths"]),
        warnings=list(case.get("warnings", ctx.warnings if isinstance(ctx, TraceContext) else [])),
        hits=list(case.get("hits", ctx.hits if isinstance(ctx, TraceContext) else [])),
    )


def _write_paths(g: h5py.Group, paths: Sequence[RayPath]) -> None:
    _str_dataset(g, "light_id", [str(p.light_id) for p in paths])
    g.create_dataset("wavelength_nm", data=np.array([p.wavelength for p in paths], dtype=np.float64))
    g.create_dataset("intensity", data=np.array([p.rays[0].intensity if p.rays else 1.0 for p in paths], dtype=np.float64))
    g.create_dataset("stops_at", data=np.array([p.stops_at for p in paths], dtype=np.int64))
    g.create_dataset("n_points", data=np.array([len(p) for p in paths], dtype=np.int64))
    g.create_dataset("positions", data=_pad_3d_float([p.points for p in paths]))
    g.create_dataset("directions", data=_pad_3d_float([np.array([r.direction for r in p.rays]) for p in paths]))
    g.create_dataset("path_length", data=_pad_2d_float([[r.path_length for r in p.rays] for p in paths]))


def _write_warnings(g: h5py.Group, warnings: Sequence[SurfaceWarning]) -> None:
    for name in ("surface_id", "kind", "message", "severity"):
        _str_dataset(g, name, [getattr(w, name) for w in warnings])
    g.create_dataset("timestamp", data=np.array([w.timestamp for w in warnings], dtype=np.float64))


def _write_hits(g: h5py.Group, hits: Sequence[HitRecord]) -> None:
    _str_dataset(g, "light_id", [str(h.light_id) for h in hits])
    _str_dataset(g, "surface_id", [h.surface_id for h in hits])
    g.create_dataset(
        "numerical_id",
        data=np.array([-1 if h.numerical_id is None else h.numerical_id for h in hits], dtype=np.int64),
    )
    g.create_dataset("wavelength_nm", data=np.array([h.wavelength for h in hits], dtype=np.float64))
    g.create_dataset("distance", data=np.array([h.distance for h in hits], dtype=np.float64))
    g.create_dataset("blocked", data=np.array([h.blocked for h in hits], dtype=bool))
    for name in ("point", "normal", "local_point", "incoming", "outgoing"):
        g.create_dataset(name, data=_vec_rows([getattr(h, name) for h in hits]))


def save_trace_hdf5(
    filepath: str,
    scenarios: Mapping[str, Mapping[str, CaseData | Mapping[str, Any]]],
    units: str = "mm, nm",
) -> None:
    """Save traced cases to HDF5 using a fixed schema contract."""

    with h5py.File(filepath, "w") as h5:
        meta = h5.create_group("meta")
        meta.attrs["created_at"] = datetime.now(timezone.utc).isoformat()
        meta.attrs["units"] = units
        meta.attrs["engine"] = "optics_core"

        g_scenarios = h5.create_group("scenarios")
        for scenario_id, cases in scenarios.items():
            g_cases = g_scenarios.create_group(str(scenario_id)).create_group("cases")
            for case_id, case in cases.items():
                case_obj = _as_case(case)
                g_case = g_cases.create_group(str(case_id))
                g_case.create_dataset("params_json", data=json.dumps(case_obj.params, default=_json_default))
                _write_paths(g_case.create_group("paths"), case_obj.paths)
                _write_warnings(g_case.create_group("warnings"), case_obj.warnings)
                _write_hits(g_case.create_group("hits"), case_obj.hits)


def _read_paths(g: h5py.Group) -> List[RayPath]:
    light_ids = _read_str(g, "light_id")
    wavelength = np.asarray(g["wavelength_nm"][()], dtype=np.float64)
    intensity = np.asarray(g["intensity"][()], dtype=np.float64)
    stops_at = np.asarray(g["stops_at"][()], dtype=np.int64)
    n_points = np.asarray(g["n_points"][()], dtype=np.int64)
    positions = np.asarray(g["positions"][()], dtype=np.float64)
    directions = np.asarray(g["directions"][()], dtype=np.float64)
    lengths = np.asarray(g["path_length"][()], dtype=np.float64)

    paths: List[RayPath] = []
    for i, text in enumerate(light_ids):
        lid = LightId.parse(text)
        n = int(n_points[i])
        rays = [
            Ray(
                position=positions[i, k],
                direction=directions[i, k],
                wavelength=float(wavelength[i]),
                intensity=float(intensity[i]),
                light_id=lid,
                path_length=float(lengths[i, k]),
                stops_at=int(stops_at[i]) if k == n - 1 else UNTERMINATED,
            )
            for k in range(n)
        ]
        paths.append(RayPath(lid, rays))
    return paths


def _read_warnings(g: h5py.Group) -> List[SurfaceWarning]:
    cols = {name: _read_str(g, name) for name in ("surface_id", "kind", "message", "severity")}
    ts = np.asarray(g["timestamp"][()], dtype=np.float64)
    return [
        SurfaceWarning(
            surface_id=cols["surface_id"][i],
            kind=cols["kind"][i],
            message=cols["message"][i],
            severity=cols["severity"][i],
            timestamp=float(ts[i]),
        )
        for i in range(len(ts))
    ]


def _read_hits(g: h5py.Group) -> List[HitRecord]:
    light_ids = _read_str(g, "light_id")
    surface_ids = _read_str(g, "surface_id")
    numerical = np.asarray(g["numerical_id"][()], dtype=np.int64)
    wl = np.asarray(g["wavelength_nm"][()], dtype=np.float64)
    dist = np.asarray(g["distance"][()], dtype=np.float64)
    blocked = np.asarray(g["blocked"][()], dtype=bool)
    vecs = {name: np.asarray(g[name][()], dtype=np.float64) for name in ("point", "normal", "local_point", "incoming", "outgoing")}
    hits: List[HitRecord] = []
    for i in range(len(light_ids)):
        out = vecs["outgoing"][i]
        hits.append(
            HitRecord(
                light_id=LightId.parse(light_ids[i]),
                wavelength=float(wl[i]),
                surface_id=surface_ids[i],
                numerical_id=None if numerical[i] < 0 else int(numerical[i]),
                point=vecs["point"][i],
                normal=vecs["normal"][i],
                local_point=vecs["local_point"][i],
                distance=float(dist[i]),
                blocked=bool(blocked[i]),
                incoming=vecs["incoming"][i],
                outgoing=None if np.isnan(out).all() else out,
            )
        )
    return hits


def load_trace_hdf5(filepath: str) -> Tuple[Dict[str, Dict[str, CaseData]], Hdf5Meta]:
    """Load trace HDF5 and reconstruct cases, paths, warnings and hits."""

    scenarios: Dict[str, Dict[str, CaseData]] = {}
    with h5py.File(filepath, "r") as h5:
        meta = Hdf5Meta(
            created_at=str(h5["meta"].attrs.get("created_at", "")),
            units=str(h5["meta"].attrs.get("units", "mm, nm")),
            engine=str(h5["meta"].attrs.get("engine", "optics_core")),
        )
        for scenario_id, g_scenario in h5["scenarios"].items():
            scenarios[scenario_id] = {}
            for case_id, g_case in g_scenario["cases"].items():
                raw = g_case["params_json"][()]
                params = json.loads(raw.decode() if isinstance(raw, bytes) else raw)
                scenarios[scenario_id][case_id] = CaseData(
                    params=params,
                    paths=_read_paths(g_case["paths"]),
                    warnings=_read_warnings(g_case["warnings"]) if "warnings" in g_case else [],
                    hits=_read_hits(g_case["hits"]) if "hits" in g_case else [],
                )
    return scenarios, meta


def self_test_roundtrip(filepath: str, atol: float = 1e-10) -> bool:
    """Write->read equivalence self-test on a traced singlet/detector bundle."""

    from optics_core.sources import LightSource
    from optics_core.surfaces import create_surface
    from optics_core.tracer import trace_bundle

    surfaces = [
        create_surface("lens", {"radius": 40.0, "semidia": 15.0, "n1": 1.0, "n2": 1.5}, [0.0, 0.0, 0.0], 0),
        create_surface("det", {"shape": "planar", "mode": "absorption", "width": 40, "height": 40}, [50.0, 0.0, 0.0], 1),
    ]
    ctx = TraceContext(seed=7)
    rays = LightSource(lid=1, position=[-10.0, 0.0, 0.0], kind="ring", param=(8.0,), number=6, wavelength=532.0).generate_rays()
    paths = trace_bundle(rays, surfaces, ctx)
    payload = {"selftest": {"case0": CaseData(params={"seed": 7}, paths=paths, warnings=ctx.warnings, hits=ctx.hits)}}
    save_trace_hdf5(filepath, payload)
    scenarios, _ = load_trace_hdf5(filepath)
    case = scenarios["selftest"]["case0"]

    same_ids = [str(p.light_id) for p in paths] == [str(p.light_id) for p in case.paths]
    same_points = all(np.allclose(a.points, b.points, atol=atol) for a, b in zip(paths, case.paths))
    same_hits = len(ctx.hits) == len(case.hits) and all(
        np.allclose(a.point, b.point, atol=atol) for a, b in zip(ctx.hits, case.hits)
    )
    return bool(same_ids and same_points and same_hits and len(case.warnings) == len(ctx.warnings))
