from __future__ import annotations

from pathlib import Path

import pytest

from kernel_timings.measure.config import MeasureConfig
from kernel_timings.measure.errors import ProfilerRunError
from kernel_timings.measure.runner import build_profiler_command, clear_stale_outputs, run_benchmark


def test_build_profiler_command_flags(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("KERNEL_TIMINGS_PROFILER", raising=False)
    cfg = MeasureConfig(root=tmp_path, artifact_args=("--depwarn=no",))
    cmd = build_profiler_command(cfg)
    assert cmd[0] == "nvprof"
    assert cmd[-2:] == ["./profile", "--depwarn=no"]
    joined = " ".join(cmd)
    for flag in (
        "--profile-from-start off",
        "--profile-child-processes",
        "--unified-memory-profiling off",
        "--print-gpu-trace",
        "--normalized-time-unit us",
        "--csv",
        "--log-file nvprof.csv.%p",
    ):
        assert flag in joined


def test_profiler_env_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KERNEL_TIMINGS_PROFILER", "/opt/cuda/bin/nvprof")
    assert build_profiler_command(MeasureConfig(root=tmp_path))[0] == "/opt/cuda/bin/nvprof"


def test_clear_stale_outputs_only_removes_trace_logs(tmp_path: Path) -> None:
    (tmp_path / "nvprof.csv.1").write_text("old")
    (tmp_path / "nvprof.csv.22").write_text("old")
    (tmp_path / "profile.csv").write_text("cache")
    removed = clear_stale_outputs(tmp_path, "nvprof.csv.*")
    assert [p.name for p in removed] == ["nvprof.csv.1", "nvprof.csv.22"]
    assert sorted(p.name for p in tmp_path.iterdir()) == ["profile.csv"]


def test_run_benchmark_returns_disambiguated_records(tmp_path: Path, fake_nvprof: Path, make_bench) -> None:
    d = make_bench(tmp_path, "cuda", "bfs")
    recs = run_benchmark(d, "cuda", "bfs", config=MeasureConfig(root=tmp_path))
    assert [(r.kernel, r.duration) for r in recs] == [
        ("Kernel_1", 3.0),
        ("Kernel2_2", 1.0),
        ("Kernel_3", 4.0),
        ("Kernel2_4", 1.0),
    ]
    assert {(r.suite, r.benchmark) for r in recs} == {("cuda", "bfs")}


def test_run_benchmark_demangles_julia_wrapper_names(tmp_path: Path, fake_nvprof: Path, make_bench) -> None:
    d = make_bench(tmp_path, "julia_cuda", "hotspot")
    recs = run_benchmark(d, "julia_cuda", "hotspot", config=MeasureConfig(root=tmp_path))
    assert [r.kernel for r in recs] == ["Kernel", "Kernel2", "Kernel", "Kernel2"]


def test_run_benchmark_removes_stale_outputs_first(tmp_path: Path, fake_nvprof: Path, make_bench) -> None:
    d = make_bench(tmp_path, "cuda", "bfs")
    (d / "nvprof.csv.1").write_text("garbage from a crashed run\n")
    recs = run_benchmark(d, "cuda", "bfs", config=MeasureConfig(root=tmp_path))
    assert len(recs) == 4
    assert not (d / "nvprof.csv.1").exists()


def test_run_benchmark_ignores_auxiliary_process_log(
    tmp_path: Path, fake_nvprof: Path, make_bench, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("FAKE_NVPROF_MODE", "aux")
    d = make_bench(tmp_path, "cuda", "bfs")
    recs = run_benchmark(d, "cuda", "bfs", config=MeasureConfig(root=tmp_path))
    assert len(recs) == 4


def test_run_benchmark_failure_surfaces_output(
    tmp_path: Path, fake_nvprof: Path, make_bench, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("FAKE_NVPROF_MODE", "fail")
    d = make_bench(tmp_path, "cuda", "bfs")
    with pytest.raises(ProfilerRunError, match="did not succeed") as exc:
        run_benchmark(d, "cuda", "bfs", config=MeasureConfig(root=tmp_path))
    assert "no CUDA-capable device" in exc.value.output
    assert exc.value.directory == d


def test_run_benchmark_without_data_is_fatal(
    tmp_path: Path, fake_nvprof: Path, make_bench, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("FAKE_NVPROF_MODE", "empty")
    d = make_bench(tmp_path, "cuda", "bfs")
    with pytest.raises(ProfilerRunError, match="no output files"):
        run_benchmark(d, "cuda", "bfs", config=MeasureConfig(root=tmp_path))


def test_run_benchmark_with_two_data_traces_is_fatal(
    tmp_path: Path, fake_nvprof: Path, make_bench, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("FAKE_NVPROF_MODE", "two")
    d = make_bench(tmp_path, "cuda", "bfs")
    with pytest.raises(ProfilerRunError, match="too many output files"):
        run_benchmark(d, "cuda", "bfs", config=MeasureConfig(root=tmp_path))


def test_run_benchmark_missing_profiler(tmp_path: Path, make_bench, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KERNEL_TIMINGS_PROFILER", str(tmp_path / "no-such-nvprof"))
    d = make_bench(tmp_path, "cuda", "bfs")
    with pytest.raises(ProfilerRunError, match="failed to launch"):
        run_benchmark(d, "cuda", "bfs", config=MeasureConfig(root=tmp_path))
