from __future__ import annotations

import json
import platform
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from mdutils.mdutils import MdUtils  # type: ignore[import-untyped]

from .accuracy import summarize, summary_is_accurate
from .config import MeasureConfig
from .dataset import read_dataset
from .model import BenchmarkResult, MeasurementRecord


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def _output_of(argv: list[str]) -> str | None:
    # None when the program is missing, fails, or prints nothing.
    try:
        proc = subprocess.run(argv, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, check=True)
    except (OSError, subprocess.CalledProcessError):
        return None
    return proc.stdout.decode(errors="replace").strip() or None


def environment_snapshot(profiler: str, root: Path) -> dict[str, Any]:
    """Profiler release line, host and git state of the benchmark tree.

    nvprof prints its banner before the release line, so only the last line of
    `--version` is kept. `git` is `None` when `root` is not inside a checkout.
    """
    version = _output_of([profiler, "--version"])
    head = _output_of(["git", "-C", str(root), "rev-parse", "--abbrev-ref", "HEAD", "HEAD"])
    git: dict[str, Any] | None = None
    if head is not None and len(head.splitlines()) == 2:
        branch, commit = head.splitlines()
        changes = _output_of(["git", "-C", str(root), "status", "--porcelain=v1"])
        git = {"branch": branch, "commit": commit, "dirty": changes is not None}
    return {
        "profiler": {"path": profiler, "version": version.splitlines()[-1].strip() if version else None},
        "host": {"platform": platform.platform(), "machine": platform.machine()},
        "git": git,
    }


def metadata_path(config: MeasureConfig) -> Path:
    return config.output_path.with_name("meta.json")


def write_run_metadata(
    config: MeasureConfig, results: list[BenchmarkResult], *, started_at: str, finished_at: str
) -> Path:
    """Write `meta.json` next to the merged dataset."""
    meta = {
        "started_at": started_at,
        "finished_at": finished_at,
        **environment_snapshot(config.resolve_profiler(), config.root),
        "config": config.to_dict(),
        "benchmarks": [r.to_dict() for r in results],
        "outputs": {"dataset": str(config.output_path)},
    }
    path = metadata_path(config)
    path.write_text(json.dumps(meta, indent=2, sort_keys=True) + "\n")
    return path


def _format_float(v: float) -> str:
    return f"{v:.3f}"


def write_accuracy_report(
    records: list[MeasurementRecord], out_path: Path, *, min_iterations: int, max_uncertainty: float
) -> Path:
    """Write a Markdown table of per-kernel accuracy; returns the `.md` path."""
    out_path.parent.mkdir(parents=True, exist_ok=True)
    summaries = summarize(records)
    accurate = [summary_is_accurate(s, min_iterations=min_iterations, max_uncertainty=max_uncertainty) for s in summaries]

    md_path = out_path if out_path.suffix == ".md" else Path(f"{out_path}.md")
    md = MdUtils(file_name=str(md_path), title="Kernel Timing Accuracy")
    md.new_paragraph(
        f"{len(summaries)} kernel(s) across {len({(s.suite, s.benchmark) for s in summaries})} benchmark(s); "
        f"{sum(accurate)} meet >= {min_iterations} iterations and relative uncertainty < {max_uncertainty}."
    )

    header = ["suite", "benchmark", "kernel", "iterations", "best (us)", "abs_uncert (us)", "rel_uncert", "accurate"]
    cells: list[str] = list(header)
    for s, ok in zip(summaries, accurate):
        cells += [
            s.suite,
            s.benchmark,
            f"`{s.kernel}`",
            str(s.iterations),
            _format_float(s.best),
            _format_float(s.abs_uncertainty),
            f"{s.rel_uncertainty:.4f}",
            "yes" if ok else "no",
        ]
    md.new_header(level=1, title="Kernels")
    md.new_table(columns=len(header), rows=len(summaries) + 1, text=cells, text_align="left")
    md.create_md_file()
    return md_path


def summary_run(*, dataset: Path, out: Path, min_iterations: int, max_uncertainty: float) -> int:
    """Summarize an existing dataset or cache file (never runs the profiler)."""
    if not dataset.exists():
        raise FileNotFoundError(f"Missing dataset at {dataset}")
    records = read_dataset(dataset)
    write_accuracy_report(records, out, min_iterations=min_iterations, max_uncertainty=max_uncertainty)
    return 0
