from __future__ import annotations

from optics_core.system import build_optical_system
from scenarios.common import beam, detector, trace_case


def build_system(wavelength: float = 587.6, detector_x: float = 95.0):
    surfaces = {
        "front": {"sid": 0, "shape": "spherical", "radius": 50.0, "semidia": 15.0, "n1": 1.0, "n2_material": "N-BK7"},
        "back": {"sid": 1, "shape": "plano", "semidia": 15.0, "n1_material": "N-BK7", "n2": 1.0},
        "det": detector(2),
    }
    train = [
        {
            "src": {"lid": 1},
            "lens_front": {"sid": 0, "position": [0, 0, 0]},
            "lens_back": {"sid": 1, "position": [5, 0, 0]},
            "detector": {"sid": 2, "position": [detector_x, 0, 0]},
        }
    ]
    return build_optical_system(train, surfaces, light_templates={"beam": beam(1, wavelength)}, name="S1")


def build_sweep_params():
    return [
        {"case_id": "s1_F486", "wavelength": 486.1, "detector_x": 95.0},
        {"case_id": "s1_d588", "wavelength": 587.6, "detector_x": 95.0},
        {"case_id": "s1_C656", "wavelength": 656.3, "detector_x": 95.0},
    ]


def run_case(params):
    system = build_system(params["wavelength"], params["detector_x"])
    paths, ctx = trace_case(system, params)
    return system, paths, ctx
