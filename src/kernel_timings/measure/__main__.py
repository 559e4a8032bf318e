from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any

from jsonschema import ValidationError

from . import prereqs
from .config import (
    DEFAULT_MAX_KERNEL_UNCERTAINTY,
    DEFAULT_MIN_KERNEL_ITERATIONS,
    MeasureConfig,
    build_config,
    load_config_file,
)
from .discovery import find_common_benchmarks
from .errors import ProfilerRunError, TraceFormatError
from .orchestrator import Orchestrator
from .report import summary_run, utc_now_iso, write_run_metadata


def _abs_path(p: str) -> Path:
    return Path(p).expanduser().resolve()


def _add_config_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", type=_abs_path, default=None, help="JSON config file (CLI flags take precedence).")
    p.add_argument("--root", type=_abs_path, default=None, help="Directory holding one subdirectory per suite.")
    p.add_argument(
        "--suite",
        dest="suites",
        action="append",
        default=None,
        help="Suite to measure (repeatable; default: cuda, julia_cuda).",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kernel_timings.measure",
        description="Per-kernel GPU timing measurement across benchmark suites (nvprof).",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Log every profiling iteration.")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors.")
    sub = parser.add_subparsers(dest="cmd", required=True)

    run = sub.add_parser("run", help="Profile all common benchmarks until accurate, then write the dataset.")
    _add_config_args(run)
    run.add_argument("--output", type=_abs_path, default=None, help="Merged dataset path (default: <root>/measurements.dat).")
    run.add_argument("--min-kernel-iterations", type=int, default=None)
    run.add_argument("--max-kernel-uncertainty", type=float, default=None, help="Relative uncertainty bound (e.g. 0.02).")
    run.add_argument("--max-benchmark-seconds", type=float, default=None, help="Wall-clock budget per benchmark.")
    run.add_argument("--max-benchmark-runs", type=int, default=None, help="Profiler invocations per benchmark.")
    run.add_argument("--profiler", default=None, help="Profiler executable (default: nvprof).")
    run.add_argument("--skip-prereqs", action="store_true", help="Do not check for the profiler/benchmarks up front.")

    lst = sub.add_parser("list", help="Print the benchmarks present in every suite.")
    _add_config_args(lst)

    summary = sub.add_parser("summary", help="Write a Markdown accuracy report from a dataset (no profiling).")
    summary.add_argument("--dataset", type=_abs_path, required=True, help="Merged dataset or per-benchmark cache file.")
    summary.add_argument("--out", type=_abs_path, required=True, help="Markdown output path.")
    summary.add_argument("--config", type=_abs_path, default=None, help="Take thresholds from the config file of the run.")
    summary.add_argument("--min-kernel-iterations", type=int, default=None, help=f"Default: {DEFAULT_MIN_KERNEL_ITERATIONS}.")
    summary.add_argument("--max-kernel-uncertainty", type=float, default=None, help=f"Default: {DEFAULT_MAX_KERNEL_UNCERTAINTY}.")

    return parser


def _configure_logging(ns: argparse.Namespace) -> None:
    level = logging.DEBUG if ns.verbose else logging.WARNING if ns.quiet else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _config_from_args(ns: argparse.Namespace) -> MeasureConfig:
    file_values = load_config_file(ns.config) if ns.config is not None else None
    overrides: dict[str, Any] = {"root": ns.root, "suites": ns.suites}
    for key in (
        "output",
        "min_kernel_iterations",
        "max_kernel_uncertainty",
        "max_benchmark_seconds",
        "max_benchmark_runs",
        "profiler",
    ):
        overrides[key] = getattr(ns, key, None)
    return build_config(file_values=file_values, overrides=overrides)


def _run(config: MeasureConfig, *, skip_prereqs: bool) -> int:
    if not skip_prereqs:
        checks = prereqs.check_all(config)
        if any(c.status == "fail" for c in checks):
            print(prereqs.format_prereq_failures(checks), file=sys.stderr)
            return 2

    started_at = utc_now_iso()
    try:
        results = Orchestrator(config).run()
    except ProfilerRunError as e:
        if e.output:
            print(e.output, file=sys.stderr)
        print(f"Measurement failed: {e}", file=sys.stderr)
        return 1
    except TraceFormatError as e:
        print(f"Malformed profiler output: {e}", file=sys.stderr)
        return 1

    write_run_metadata(config, results, started_at=started_at, finished_at=utc_now_iso())
    return 0


def _summary_thresholds(ns: argparse.Namespace) -> tuple[int, float]:
    """Accuracy thresholds for `summary`: flag, then config file, then default."""
    file_values = load_config_file(ns.config) if ns.config is not None else {}
    min_iterations = ns.min_kernel_iterations
    if min_iterations is None:
        min_iterations = file_values.get("min_kernel_iterations", DEFAULT_MIN_KERNEL_ITERATIONS)
    max_uncertainty = ns.max_kernel_uncertainty
    if max_uncertainty is None:
        max_uncertainty = file_values.get("max_kernel_uncertainty", DEFAULT_MAX_KERNEL_UNCERTAINTY)
    return int(min_iterations), float(max_uncertainty)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    ns = parser.parse_args(argv)
    _configure_logging(ns)

    if ns.cmd == "summary":
        try:
            min_iterations, max_uncertainty = _summary_thresholds(ns)
        except (ValueError, ValidationError, FileNotFoundError) as e:
            print(f"Invalid configuration: {e}", file=sys.stderr)
            return 2
        return summary_run(
            dataset=ns.dataset,
            out=ns.out,
            min_iterations=min_iterations,
            max_uncertainty=max_uncertainty,
        )

    try:
        config = _config_from_args(ns)
    except (ValueError, TypeError, ValidationError, FileNotFoundError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    if ns.cmd == "run":
        return _run(config, skip_prereqs=ns.skip_prereqs)
    if ns.cmd == "list":
        for benchmark in find_common_benchmarks(config.root, config.suites, config.artifact):
            print(benchmark)
        return 0

    raise AssertionError(f"Unhandled cmd: {ns.cmd}")


if __name__ == "__main__":
    raise SystemExit(main())
