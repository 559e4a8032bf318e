from __future__ import annotations

from typing import Any, Literal

import attrs

ResultSource = Literal["cache", "fresh"]
CheckStatus = Literal["pass", "fail"]

DATASET_COLUMNS: tuple[str, ...] = ("suite", "benchmark", "kernel", "time")


@attrs.define(frozen=True, slots=True)
class MeasurementRecord:
    """One profiled kernel invocation; `duration` is in microseconds."""

    suite: str
    benchmark: str
    kernel: str
    duration: float

    def to_row(self) -> dict[str, Any]:
        return {"suite": self.suite, "benchmark": self.benchmark, "kernel": self.kernel, "time": self.duration}


@attrs.define(frozen=True, slots=True)
class AccuracySummary:
    suite: str
    benchmark: str
    kernel: str
    iterations: int
    best: float
    abs_uncertainty: float
    rel_uncertainty: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "suite": self.suite,
            "benchmark": self.benchmark,
            "kernel": self.kernel,
            "iterations": self.iterations,
            "best": self.best,
            "abs_uncertainty": self.abs_uncertainty,
            "rel_uncertainty": self.rel_uncertainty,
        }


@attrs.define(frozen=True, slots=True)
class BenchmarkResult:
    suite: str
    benchmark: str
    source: ResultSource
    iterations: int
    records: list[MeasurementRecord] = attrs.field(factory=list)

    def to_dict(self) -> dict[str, Any]:
        # Records are persisted in the dataset itself; keep metadata compact.
        return {
            "suite": self.suite,
            "benchmark": self.benchmark,
            "source": self.source,
            "iterations": self.iterations,
            "records": len(self.records),
        }


@attrs.define(frozen=True, slots=True)
class PrerequisiteCheck:
    check_name: str
    status: CheckStatus
    details: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"check_name": self.check_name, "status": self.status, "details": self.details}
