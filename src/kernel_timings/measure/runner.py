from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from .config import MeasureConfig
from .disambiguate import disambiguate
from .errors import ProfilerRunError
from .model import MeasurementRecord
from .trace import read_trace

logger = logging.getLogger(__name__)


def build_profiler_command(config: MeasureConfig) -> list[str]:
    """Return the argv used to profile `./<artifact>` in a benchmark directory."""
    return [
        config.resolve_profiler(),
        "--profile-from-start",
        "off",
        "--profile-child-processes",
        "--unified-memory-profiling",
        "off",
        "--print-gpu-trace",
        "--normalized-time-unit",
        "us",
        "--csv",
        "--log-file",
        # nvprof expands %p to the pid, one log per profiled process.
        f"{config.trace_file}.%p",
        f"./{config.artifact}",
        *config.artifact_args,
    ]


def clear_stale_outputs(directory: Path, pattern: str) -> list[Path]:
    """Delete profiler logs left behind by an earlier (possibly failed) run."""
    removed = sorted(directory.glob(pattern))
    for p in removed:
        p.unlink()
    return removed


def _execute(cmd: list[str], *, cwd: Path) -> tuple[bool, str]:
    try:
        proc = subprocess.run(cmd, cwd=cwd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, check=False)
    except OSError as e:
        raise ProfilerRunError(f"failed to launch profiler: {e}", directory=cwd) from e
    return proc.returncode == 0, proc.stdout.decode(errors="replace")


def run_benchmark(directory: Path, suite: str, benchmark: str, *, config: MeasureConfig) -> list[MeasurementRecord]:
    """Profile one benchmark once and return the records of its single trace."""
    stale = clear_stale_outputs(directory, config.trace_pattern)
    if stale:
        logger.debug("Removed %d stale trace file(s) in %s", len(stale), directory)

    cmd = build_profiler_command(config)
    ok, output = _execute(cmd, cwd=directory)
    trace_files = sorted(directory.glob(config.trace_pattern))

    if not ok:
        raise ProfilerRunError(f"{suite}/{benchmark}: benchmark did not succeed", output=output, directory=directory)

    traces: list[list[MeasurementRecord]] = []
    for trace_file in trace_files:
        records = read_trace(trace_file, suite=suite, benchmark=benchmark)
        if records is None:
            # e.g. a precompilation process: its log never contains a kernel.
            logger.debug("No data in %s", trace_file.name)
            continue
        traces.append(disambiguate(records, benchmark, config.ambiguous_kernels))

    if not traces:
        raise ProfilerRunError(f"{suite}/{benchmark}: no output files", output=output, directory=directory)
    if len(traces) > 1:
        raise ProfilerRunError(
            f"{suite}/{benchmark}: too many output files ({len(traces)} with data)", output=output, directory=directory
        )
    return traces[0]
