"""Absorbing filter made transparent to selected wavelengths through its ``sel`` predicate."""

from __future__ import annotations

from optics_core.system import build_optical_system
from scenarios.common import beam, detector, trace_case

WAVELENGTHS = (488.0, 532.0, 633.0)


def build_system(sel: str):
    surfaces = {
        "filter": {"sid": 0, "shape": "plano", "mode": "absorption", "semidia": 20.0, "sel": sel},
        "det": detector(1),
    }
    train = [{f"src{i}": {"lid": i} for i in range(1, len(WAVELENGTHS) + 1)}]
    train[0]["filter"] = {"sid": 0, "position": [0, 0, 0]}
    train[0]["detector"] = {"sid": 1, "position": [30, 0, 0]}
    lights = {f"l{i}": beam(i, wl, number=3) for i, wl in enumerate(WAVELENGTHS, start=1)}
    return build_optical_system(train, surfaces, light_templates=lights, name="S5")


def build_sweep_params():
    # sel names the wavelengths the absorber ignores
    return [
        {"case_id": "s5_pass532", "sel": "x532", "passes": [532.0]},
        {"case_id": "s5_pass488_633", "sel": "o532", "passes": [488.0, 633.0]},
    ]


def run_case(params):
    system = build_system(params["sel"])
    paths, ctx = trace_case(system, params)
    return system, paths, ctx
