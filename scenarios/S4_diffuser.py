from __future__ import annotations

from optics_core.system import build_optical_system
from scenarios.common import beam, detector, trace_case


def build_system(with_target: bool = True):
    surfaces = {
        "diffuser": {"sid": 0, "shape": "plano", "mode": "diffuse", "semidia": 10.0},
        "det": {"sid": 1, "shape": "plano", "mode": "absorption", "semidia": 15.0},
    }
    elements = {"src": {"lid": 1}, "diffuser": {"sid": 0, "position": [0, 0, 0]}}
    if with_target:
        elements["detector"] = {"sid": 1, "position": [40, 0, 0]}
    light = beam(1, 532.0, number=25, type="gaussian", param=[8.0])
    return build_optical_system([elements], surfaces, light_templates={"beam": light}, name="S4")


def build_sweep_params():
    return [
        {"case_id": "s4_seed1", "seed": 1, "with_target": True},
        {"case_id": "s4_seed2", "seed": 2, "with_target": True, "max_workers": 4},
        {"case_id": "s4_no_target", "seed": 1, "with_target": False},
    ]


def run_case(params):
    system = build_system(params["with_target"])
    paths, ctx = trace_case(system, params)
    return system, paths, ctx
