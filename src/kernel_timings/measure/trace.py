"""
Reader for `nvprof --print-gpu-trace --csv` log files.

A log written with `--log-file` looks like::

    ==4242== NVPROF is profiling process 4242, command: ./profile
    ==4242== Profiling application: ./profile
    ==4242== Profiling result:
    "Start","Duration","Grid X",...,"Name"
    us,us,,,...
    1.234,5.678,64,...,"vadd(float*, float*, float*)"

The three banner lines and the units row are dropped; the column header is
re-joined with the data rows and read as CSV.
"""

from __future__ import annotations

import csv
import io
import re
from pathlib import Path

from .errors import TraceFormatError
from .model import MeasurementRecord

BANNER_LINES = 3
HEADER_LINE = BANNER_LINES
FIRST_DATA_LINE = HEADER_LINE + 2

API_MARKER = "[CUDA"

# Julia kernel names contain neither whitespace nor parentheses.
_WRAPPER_RE = re.compile(r"ptxcall_([^\s(]*?)_[0-9]+ ")


def _argument_list_start(name: str) -> int:
    """Index of the first `(` outside template brackets, or -1."""
    depth = 0
    for i, ch in enumerate(name):
        if ch == "<":
            depth += 1
        elif ch == ">" and depth > 0:
            depth -= 1
        elif ch == "(" and depth == 0:
            return i
    return -1


def canonicalize_kernel_name(name: str) -> str:
    """Strip launch wrappers and argument lists from a profiler kernel name.

    `ptxcall_vadd_1 (...)` -> `vadd`, `vadd(float*, int)` -> `vadd`,
    `void k<(int)2>(float*)` -> `void k<(int)2>`; anything else is returned
    unchanged. Applying it twice gives the same result.
    """
    m = _WRAPPER_RE.search(name)
    if m:
        return m.group(1)
    start = _argument_list_start(name)
    if start >= 0:
        return name[:start]
    return name


def _parse_duration(value: str | None, *, path: Path, row: int) -> float:
    try:
        return float(value or "")
    except ValueError:
        raise TraceFormatError(f"row {row}: invalid Duration {value!r}", path=path) from None


def read_trace(path: Path, *, suite: str, benchmark: str) -> list[MeasurementRecord] | None:
    """Parse one trace file into records, or `None` if it holds no data rows.

    Auxiliary processes spawned by the profiled program (e.g. during
    precompilation) produce a log without data; that is not an error.
    """
    lines = path.read_text(errors="replace").splitlines()
    if len(lines) <= HEADER_LINE:
        raise TraceFormatError(f"expected at least {HEADER_LINE + 1} lines, found {len(lines)}", path=path)

    data_lines = [ln for ln in lines[FIRST_DATA_LINE:] if ln.strip()]
    if not data_lines:
        return None

    reader = csv.DictReader(io.StringIO("\n".join([lines[HEADER_LINE], *data_lines])))
    columns = reader.fieldnames or []
    missing = [c for c in ("Name", "Duration") if c not in columns]
    if missing:
        raise TraceFormatError(f"missing column(s) {missing} in header {lines[HEADER_LINE]!r}", path=path)

    records: list[MeasurementRecord] = []
    for i, row in enumerate(reader, start=1):
        name = row.get("Name") or ""
        if name.startswith(API_MARKER):
            continue
        records.append(
            MeasurementRecord(
                suite=suite,
                benchmark=benchmark,
                kernel=canonicalize_kernel_name(name),
                duration=_parse_duration(row.get("Duration"), path=path, row=i),
            )
        )
    # Only API rows: nothing ran on the device.
    return records or None
