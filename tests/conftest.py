from __future__ import annotations

import os
from pathlib import Path

import pytest

TRACE_HEADER = '"Start","Duration","Grid X","Name"'
TRACE_UNITS = "us,us,,"

# Mimics `nvprof --csv --log-file <file>.%p`: one log per "process".
# FAKE_NVPROF_MODE: ok | fail | empty | two | aux (aux adds a data-less log).
FAKE_NVPROF = r"""#!/usr/bin/env bash
if [ "$1" = "--version" ]; then
  echo "nvprof: NVIDIA (R) Cuda command line profiler"
  echo "Release version 10.2.89 (21)"
  exit 0
fi
log=""
while [ $# -gt 0 ]; do
  if [ "$1" = "--log-file" ]; then shift; log="$1"; fi
  shift
done
base="${log%.%p}"
mode="${FAKE_NVPROF_MODE:-ok}"
echo "fake nvprof mode=$mode cwd=$PWD"
if [ "$mode" = "fail" ]; then
  echo "CUDA error: no CUDA-capable device is detected" >&2
  exit 3
fi

banner() {
  echo "==$1== NVPROF is profiling process $1, command: ./profile"
  echo "==$1== Profiling application: ./profile"
  echo "==$1== Profiling result:"
}

write_trace() {
  {
    banner "$1"
    echo '"Start","Duration","Grid X","Name"'
    echo 'us,us,,'
    echo '1.0,0.5,,"[CUDA memcpy HtoD]"'
    case "$PWD" in
      */julia_cuda/*)
        echo '2.0,3.0,64,"ptxcall_Kernel_1 ([64,1,1], [512,1,1])"'
        echo '6.0,1.0,64,"ptxcall_Kernel2_2 ([64,1,1], [512,1,1])"'
        echo '8.0,4.0,64,"ptxcall_Kernel_1 ([64,1,1], [512,1,1])"'
        echo '13.0,1.0,64,"ptxcall_Kernel2_2 ([64,1,1], [512,1,1])"'
        ;;
      *)
        echo '2.0,3.0,64,"Kernel(Node*, int*, bool*, bool*, bool*, int*, int)"'
        echo '6.0,1.0,64,"Kernel2(bool*, bool*, bool*, bool*, int)"'
        echo '8.0,4.0,64,"Kernel(Node*, int*, bool*, bool*, bool*, int*, int)"'
        echo '13.0,1.0,64,"Kernel2(bool*, bool*, bool*, bool*, int)"'
        ;;
    esac
    echo '15.0,0.5,,"[CUDA memcpy DtoH]"'
  } > "$base.$1"
}

case "$mode" in
  ok) write_trace 4242 ;;
  aux) write_trace 4242; { banner 4241; echo "==4241== No kernels were profiled."; } > "$base.4241" ;;
  two) write_trace 4242; write_trace 4243 ;;
  empty) { banner 4241; echo "==4241== No kernels were profiled."; } > "$base.4241" ;;
esac
exit 0
"""


def write_trace_file(path: Path, rows: list[str], *, pid: int = 4242) -> Path:
    lines = [
        f"=={pid}== NVPROF is profiling process {pid}, command: ./profile",
        f"=={pid}== Profiling application: ./profile",
        f"=={pid}== Profiling result:",
        TRACE_HEADER,
        TRACE_UNITS,
        *rows,
    ]
    path.write_text("\n".join(lines) + "\n")
    return path


def make_benchmark(root: Path, suite: str, benchmark: str, *, artifact: str = "profile") -> Path:
    d = root / suite / benchmark
    d.mkdir(parents=True, exist_ok=True)
    exe = d / artifact
    exe.write_text("#!/usr/bin/env bash\nexit 0\n")
    exe.chmod(0o755)
    return d


@pytest.fixture
def fake_nvprof(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    bin_dir = tmp_path / "fake-bin"
    bin_dir.mkdir()
    exe = bin_dir / "nvprof"
    exe.write_text(FAKE_NVPROF)
    exe.chmod(0o755)
    monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
    monkeypatch.setenv("KERNEL_TIMINGS_PROFILER", os.fspath(exe))
    monkeypatch.setenv("FAKE_NVPROF_MODE", "ok")
    return exe


@pytest.fixture
def make_trace():
    return write_trace_file


@pytest.fixture
def make_bench():
    return make_benchmark
