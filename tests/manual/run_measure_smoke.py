from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

from kernel_timings.measure import prereqs
from kernel_timings.measure.config import MeasureConfig


def main() -> int:
    root = os.environ.get("KERNEL_TIMINGS_ROOT")
    if not root:
        print("Skipping: set KERNEL_TIMINGS_ROOT to a directory of built benchmark suites")
        return 0

    out_dir = Path("tmp") / "measure_smoke"
    config = MeasureConfig(root=Path(root), output=out_dir / "measurements.dat")
    checks = prereqs.check_all(config)
    if any(c.status == "fail" for c in checks):
        print("Skipping: missing prerequisites")
        print(prereqs.format_prereq_failures(checks))
        return 0

    cmd = [
        sys.executable,
        "-m",
        "kernel_timings.measure",
        "run",
        "--root",
        str(config.root),
        "--output",
        str(config.output_path),
        "--max-benchmark-runs",
        "3",
    ]
    rc = subprocess.call(cmd)
    print(f"Dataset: {config.output_path}")
    return rc


if __name__ == "__main__":
    raise SystemExit(main())
