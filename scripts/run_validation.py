"""Trace the validation scenarios and write the sweep report.

Usage:
    python -m scripts.run_validation --out artifacts/validation_report.md
    python -m scripts.run_validation --scenario S2 --scenario S5 --log-level INFO
"""

from __future__ import annotations

import argparse
import logging
import shutil
from pathlib import Path

from scenarios.runner import SCENARIO_MODULES, run_all


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Trace optical scenarios, export HDF5 and plots, write a report.")
    parser.add_argument("--out", default="artifacts/validation_report.md", help="where to copy report.md")
    parser.add_argument("--h5", default="artifacts/trace_sweep.h5", help="HDF5 file receiving every traced case")
    parser.add_argument("--plots", default="artifacts/plots", help="directory for path and hit-map figures")
    parser.add_argument(
        "--scenario",
        action="append",
        choices=sorted(SCENARIO_MODULES),
        help="restrict the sweep to this scenario id (repeatable)",
    )
    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    report = Path(run_all(args.h5, args.plots, only=args.scenario))
    target = Path(args.out)
    if report.resolve() != target.resolve():
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(report, target)
    logging.getLogger(__name__).info("report written to %s", target)
    print(target)


if __name__ == "__main__":
    main()
