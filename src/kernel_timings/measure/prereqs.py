from __future__ import annotations

import shutil

from .config import MeasureConfig
from .discovery import find_common_benchmarks
from .model import PrerequisiteCheck


def check_profiler_available(config: MeasureConfig) -> PrerequisiteCheck:
    profiler = config.resolve_profiler()
    if shutil.which(profiler) is not None:
        return PrerequisiteCheck(check_name="profiler_available", status="pass")
    return PrerequisiteCheck(
        check_name="profiler_available",
        status="fail",
        details=f"`{profiler}` not found on PATH (install the CUDA toolkit or set KERNEL_TIMINGS_PROFILER).",
    )


def check_root_exists(config: MeasureConfig) -> PrerequisiteCheck:
    if config.root.is_dir():
        return PrerequisiteCheck(check_name="root_exists", status="pass")
    return PrerequisiteCheck(check_name="root_exists", status="fail", details=f"Missing benchmark root: {config.root}")


def check_suites_exist(config: MeasureConfig) -> PrerequisiteCheck:
    missing = [s for s in config.suites if not (config.root / s).is_dir()]
    if not missing:
        return PrerequisiteCheck(check_name="suites_exist", status="pass")
    return PrerequisiteCheck(
        check_name="suites_exist", status="fail", details=f"Missing suite directories: {', '.join(missing)}"
    )


def check_common_benchmarks(config: MeasureConfig) -> PrerequisiteCheck:
    if find_common_benchmarks(config.root, config.suites, config.artifact):
        return PrerequisiteCheck(check_name="common_benchmarks", status="pass")
    return PrerequisiteCheck(
        check_name="common_benchmarks",
        status="fail",
        details=f"No benchmark has a runnable `{config.artifact}` in every suite (build the benchmarks first).",
    )


def check_all(config: MeasureConfig) -> list[PrerequisiteCheck]:
    return [
        check_profiler_available(config),
        check_root_exists(config),
        check_suites_exist(config),
        check_common_benchmarks(config),
    ]


def format_prereq_failures(checks: list[PrerequisiteCheck]) -> str:
    lines: list[str] = ["Missing prerequisites:"]
    for c in checks:
        if c.status != "fail":
            continue
        hint = f" - {c.details}" if c.details else ""
        lines.append(f"- {c.check_name}{hint}")
    return "\n".join(lines)
