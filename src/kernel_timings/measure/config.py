from __future__ import annotations

import json
import os
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import attrs
from jsonschema import Draft202012Validator

from .disambiguate import AMBIGUOUS_KERNELS, AmbiguousKernelTable, freeze_table

PROFILER_ENV = "KERNEL_TIMINGS_PROFILER"

DEFAULT_SUITES: tuple[str, ...] = ("cuda", "julia_cuda")
DEFAULT_MIN_KERNEL_ITERATIONS = 10
DEFAULT_MAX_KERNEL_UNCERTAINTY = 0.02
DEFAULT_MAX_BENCHMARK_SECONDS = 300.0
DEFAULT_MAX_BENCHMARK_RUNS = 100


def _abs_path(p: str | Path) -> Path:
    return Path(p).expanduser().resolve()


def _suites(v: Iterable[str]) -> tuple[str, ...]:
    out = tuple(v)
    if len(set(out)) != len(out):
        raise ValueError(f"Duplicate suite names: {list(out)}")
    return out


@attrs.define(frozen=True, slots=True)
class MeasureConfig:
    """Settings for one corpus run; built once at startup and never mutated."""

    root: Path = attrs.field(converter=_abs_path)
    suites: tuple[str, ...] = attrs.field(
        default=DEFAULT_SUITES, converter=_suites, validator=attrs.validators.min_len(1)
    )
    min_kernel_iterations: int = attrs.field(default=DEFAULT_MIN_KERNEL_ITERATIONS, validator=attrs.validators.ge(1))
    max_kernel_uncertainty: float = attrs.field(
        default=DEFAULT_MAX_KERNEL_UNCERTAINTY, converter=float, validator=attrs.validators.gt(0.0)
    )
    max_benchmark_seconds: float = attrs.field(
        default=DEFAULT_MAX_BENCHMARK_SECONDS, converter=float, validator=attrs.validators.gt(0.0)
    )
    max_benchmark_runs: int = attrs.field(default=DEFAULT_MAX_BENCHMARK_RUNS, validator=attrs.validators.ge(1))
    profiler: str = "nvprof"
    artifact: str = "profile"
    artifact_args: tuple[str, ...] = attrs.field(default=(), converter=tuple)
    trace_file: str = "nvprof.csv"
    cache_file: str = "profile.csv"
    output: Path | None = attrs.field(default=None, converter=attrs.converters.optional(_abs_path))
    ambiguous_kernels: AmbiguousKernelTable = attrs.field(factory=lambda: dict(AMBIGUOUS_KERNELS), converter=freeze_table)

    @property
    def trace_pattern(self) -> str:
        return f"{self.trace_file}.*"

    @property
    def output_path(self) -> Path:
        return self.output if self.output is not None else self.root / "measurements.dat"

    def benchmark_dir(self, suite: str, benchmark: str) -> Path:
        return self.root / suite / benchmark

    def resolve_profiler(self) -> str:
        # Allow explicit override (useful for wrappers and non-standard installs).
        return os.environ.get(PROFILER_ENV) or self.profiler

    def to_dict(self) -> dict[str, Any]:
        return {
            "root": str(self.root),
            "suites": list(self.suites),
            "min_kernel_iterations": self.min_kernel_iterations,
            "max_kernel_uncertainty": self.max_kernel_uncertainty,
            "max_benchmark_seconds": self.max_benchmark_seconds,
            "max_benchmark_runs": self.max_benchmark_runs,
            "profiler": self.profiler,
            "artifact": self.artifact,
            "artifact_args": list(self.artifact_args),
            "trace_file": self.trace_file,
            "cache_file": self.cache_file,
            "output": str(self.output_path),
            "ambiguous_kernels": {k: sorted(v) for k, v in sorted(self.ambiguous_kernels.items())},
        }


def config_schema_path() -> Path:
    return Path(__file__).resolve().parent / "schemas" / "config.schema.json"


def validate_config_file_payload(payload: Any, *, schema_path: Path | None = None) -> None:
    schema_path = config_schema_path() if schema_path is None else schema_path
    schema = json.loads(schema_path.read_text())
    Draft202012Validator(schema).validate(payload)


def load_config_file(path: Path) -> dict[str, Any]:
    """Load and validate a JSON config file.

    Relative `root`/`output` paths are resolved against the config file's
    directory, not the current working directory.
    """
    payload = json.loads(path.read_text())
    validate_config_file_payload(payload)

    base = path.resolve().parent
    for key in ("root", "output"):
        if key in payload and not Path(payload[key]).expanduser().is_absolute():
            payload[key] = str(base / payload[key])
    return payload


def build_config(*, file_values: Mapping[str, Any] | None = None, overrides: Mapping[str, Any] | None = None) -> MeasureConfig:
    """Merge config-file values with CLI overrides (`None` means "not given")."""
    values: dict[str, Any] = dict(file_values or {})
    for k, v in (overrides or {}).items():
        if v is not None:
            values[k] = v

    if "root" not in values:
        raise ValueError("Missing benchmark root directory (pass --root or set `root` in the config file).")

    if "ambiguous_kernels" in values:
        # Config-file entries extend the built-in table rather than replacing it.
        merged = dict(AMBIGUOUS_KERNELS)
        merged.update({k: frozenset(v) for k, v in values["ambiguous_kernels"].items()})
        values["ambiguous_kernels"] = merged

    return MeasureConfig(**values)
