"""Periscope: two 45-degree fold mirrors built as one assembly, then placed and rolled."""

from __future__ import annotations

from optics_core.system import build_optical_system
from scenarios.common import beam, detector, trace_case

RISE = 30.0


def periscope(aid: int = 0):
    return {
        "aid": aid,
        "m1": {"shape": "plano", "mode": "mirror", "semidia": 8.0, "normal": [-1, 1, 0]},
        "m2": {"shape": "plano", "mode": "mirror", "semidia": 8.0, "normal": [1, -1, 0], "relative": [0, RISE, 0]},
    }


def build_system(dial: float = 0.0):
    train = [
        {
            "src": {"lid": 1},
            "periscope": {"aid": 0, "position": [0, 0, 0], "dial": dial},
            "detector": {"sid": 0, "position": [60, 0, 0]},
        }
    ]
    light = beam(1, 633.0, type="uniform", param=[2.0])
    return build_optical_system(train, {"det": detector(0, size=200.0)}, [periscope(0)], {"beam": light}, name="S3")


def build_sweep_params():
    return [
        {"case_id": "s3_dial0", "dial": 0.0},
        {"case_id": "s3_dial90", "dial": 90.0},
    ]


def run_case(params):
    system = build_system(params["dial"])
    paths, ctx = trace_case(system, params)
    return system, paths, ctx
