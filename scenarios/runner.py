"""Scenario sweep runner + auto plot + validation report."""

from __future__ import annotations

from importlib import import_module
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np

from analysis.ray_stats import path_lengths, spot_summary, stop_histogram, terminal_points, warning_counts
from optics_core.diagnostics import TraceContext
from optics_core.rays import LightId, RayPath
from optics_core.system import OpticalSystem
from optics_io.hdf5_io import CaseData, save_trace_hdf5
from plots import ray_plots

logger = logging.getLogger(__name__)

SCENARIO_MODULES = {
    "S1": "scenarios.S1_singlet_detector",
    "S2": "scenarios.S2_beamsplitter",
    "S3": "scenarios.S3_mirror_assembly",
    "S4": "scenarios.S4_diffuser",
    "S5": "scenarios.S5_wavelength_filter",
}


def _stop_id(system: OpticalSystem, surface_id: str) -> int:
    return int(system.surface(surface_id).numerical_id)


def case_failures(sid: str, p: Dict, system: OpticalSystem, paths: List[RayPath], ctx: TraceContext) -> List[str]:
    """Automatic physics checks for one traced case."""

    case_id = p["case_id"]
    out: List[str] = []
    n_rays = sum(light.number for light in system.lights)

    if sid == "S1":
        det = _stop_id(system, "detector")
        missed = [str(x.light_id) for x in paths if x.stops_at != det]
        if missed:
            out.append(f"S1:{case_id} {len(missed)} path(s) did not stop on the detector: {missed}")
    if sid == "S2":
        if len(paths) != 2 * n_rays:
            out.append(f"S2:{case_id} expected {2 * n_rays} paths after the split, got {len(paths)}")
        source = system.lights[0].lid
        ids = {str(x.light_id) for x in paths}
        expected_ids = {str(LightId(source)), str(LightId(source).branch(_stop_id(system, "bs")))}
        if ids != expected_ids:
            out.append(f"S2:{case_id} light ids {sorted(ids)} != {sorted(expected_ids)}")
        expected = {_stop_id(system, "det_t"): n_rays, _stop_id(system, "det_r"): n_rays}
        if stop_histogram(paths) != expected:
            out.append(f"S2:{case_id} stop histogram {stop_histogram(paths)} != {expected}")
    if sid == "S3":
        ends = terminal_points(paths)
        axis = 1 if abs(float(p.get("dial", 0.0))) % 180 < 45 else 2
        if len(ends) == 0 or not np.allclose(ends[:, 0], 60.0, atol=1e-6):
            out.append(f"S3:{case_id} paths did not all end on the detector plane x=60")
        elif abs(abs(float(np.mean(ends[:, axis]))) - 30.0) > 1e-6:
            out.append(f"S3:{case_id} periscope offset {float(np.mean(ends[:, axis])):.6f} on axis {axis}, expected +/-30")
    if sid == "S4":
        n_errors = len(ctx.errors())
        if p.get("with_target", True) and n_errors:
            out.append(f"S4:{case_id} {n_errors} error warning(s) with a target surface present")
        if not p.get("with_target", True) and n_errors == 0:
            out.append(f"S4:{case_id} diffuser without a target raised no error warning")
    if sid == "S5":
        det = _stop_id(system, "detector")
        reached = sorted({x.wavelength for x in paths if x.stops_at == det})
        if reached != sorted(float(w) for w in p["passes"]):
            out.append(f"S5:{case_id} wavelengths on detector {reached}, expected {p['passes']}")
    return out


def run_all(
    out_h5: str = "artifacts/trace_sweep.h5",
    out_plot_dir: str = "artifacts/plots",
    only: Optional[Sequence[str]] = None,
) -> str:
    payload: Dict[str, Dict[str, CaseData]] = {}
    report_lines: List[str] = [
        "# Validation Report",
        "",
        "- units: positions in mm, wavelengths in nm",
        "- spot: hit centroid and RMS radius in the final surface's local Y-Z plane",
        "",
    ]
    failures: List[str] = []

    unknown = sorted(set(only or ()) - set(SCENARIO_MODULES))
    if unknown:
        raise ValueError(f"unknown scenario ids: {unknown}")

    for sid, mod_name in SCENARIO_MODULES.items():
        if only and sid not in only:
            continue
        mod = import_module(mod_name)
        payload[sid] = {}
        report_lines.append(f"## {sid}")
        for p in mod.build_sweep_params():
            system, paths, ctx = mod.run_case(p)
            case_id = p["case_id"]
            logger.info("%s:%s traced %d paths, %d warnings", sid, case_id, len(paths), len(ctx.warnings))
            payload[sid][case_id] = CaseData(params=p, paths=paths, warnings=list(ctx.warnings), hits=list(ctx.hits))

            if not len(paths):
                report_lines.append(f"- case `{case_id}`: paths=0")
                continue

            lengths = path_lengths(paths)
            report_lines.append(f"- case `{case_id}`: paths={len(paths)}, stops={stop_histogram(paths)}")
            report_lines.append(f"  - path length: min={lengths.min():.3f}, max={lengths.max():.3f}, mean={lengths.mean():.3f}")
            by_surface = ctx.hits_by_surface()
            report_lines.append("  - hits per surface: " + (", ".join(f"{k}={len(v)}" for k, v in by_surface.items()) or "none"))
            if system.surfaces:
                final = system.surfaces[-1]
                spot = spot_summary(ctx.hits, final.id)
                report_lines.append(
                    f"  - spot on `{final.id}`: n={spot['count']}, centroid=({spot['centroid_y']:.4f}, {spot['centroid_z']:.4f}), "
                    f"rms={spot['rms_radius']:.4f}"
                )
            report_lines.append(f"  - warnings: {warning_counts(ctx.warnings) or 'none'}")

            case_dir = str(Path(out_plot_dir) / sid / case_id)
            plot_files = ray_plots.plot_all(paths, system.surfaces, ctx.hits, case_dir)
            report_lines.append("  - plots: " + ", ".join(f"[{Path(f).stem}]({f})" for f in plot_files))

            failures.extend(case_failures(sid, p, system, paths, ctx))

        report_lines.append("")

    Path(out_h5).parent.mkdir(parents=True, exist_ok=True)
    save_trace_hdf5(out_h5, payload)

    report_lines.append("## Failure Checks")
    if failures:
        for msg in failures:
            report_lines.append(f"- FAIL: {msg}")
    else:
        report_lines.append("- PASS: No automatic failure checks triggered.")

    report_path = Path(out_plot_dir).parent / "report.md"
    report_path.write_text("\n".join(report_lines), encoding="utf-8")
    return str(report_path)


if __name__ == "__main__":
    print(run_all())
