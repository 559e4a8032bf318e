from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path


def is_runnable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def suite_benchmarks(suite_dir: Path, artifact: str) -> set[str]:
    """Names of benchmark directories under `suite_dir` that contain `artifact`."""
    if not suite_dir.is_dir():
        return set()
    return {p.name for p in suite_dir.iterdir() if p.is_dir() and is_runnable(p / artifact)}


def find_common_benchmarks(root: Path, suites: Iterable[str], artifact: str) -> list[str]:
    """Benchmarks present (with a runnable artifact) in every suite, sorted."""
    per_suite = [suite_benchmarks(root / s, artifact) for s in suites]
    if not per_suite:
        return []
    return sorted(set.intersection(*per_suite))
