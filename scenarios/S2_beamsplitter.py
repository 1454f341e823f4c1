from __future__ import annotations

from optics_core.system import build_optical_system
from scenarios.common import beam, detector, trace_case


def build_system(transmission: float = 0.5):
    surfaces = {
        "splitter": {"sid": 0, "shape": "plano", "mode": "partial", "semidia": 20.0, "n1": 1.0, "n2": 1.0, "transmission": transmission},
        "det": detector(1),
    }
    train = [
        {
            "src": {"lid": 1},
            "bs": {"sid": 0, "position": [0, 0, 0], "normal": [-1, -1, 0]},
            "det_t": {"sid": 1, "position": [50, 0, 0]},
            "det_r": {"sid": 1, "position": [0, -50, 0], "normal": [0, 1, 0]},
        }
    ]
    return build_optical_system(train, surfaces, light_templates={"beam": beam(1, 532.0, number=5)}, name="S2")


def build_sweep_params():
    return [
        {"case_id": "s2_t0.3", "transmission": 0.3},
        {"case_id": "s2_t0.7", "transmission": 0.7},
    ]


def run_case(params):
    system = build_system(params["transmission"])
    paths, ctx = trace_case(system, params)
    return system, paths, ctx
