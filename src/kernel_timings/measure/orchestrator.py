from __future__ import annotations

import functools
import logging
import time
from collections.abc import Callable
from pathlib import Path

from .accuracy import is_accurate
from .config import MeasureConfig
from .dataset import read_dataset, write_dataset
from .discovery import find_common_benchmarks
from .model import BenchmarkResult, MeasurementRecord
from .runner import run_benchmark

logger = logging.getLogger(__name__)

Runner = Callable[[Path, str, str], list[MeasurementRecord]]
Clock = Callable[[], float]


class Orchestrator:
    """Measure every benchmark common to all suites and merge the results.

    Each benchmark is either loaded from its cache file (trusted as-is) or
    profiled repeatedly until its kernels are accurate enough, the run budget
    is used up, or the time budget expires; fresh results are then cached.
    """

    def __init__(self, config: MeasureConfig, *, runner: Runner | None = None, clock: Clock = time.monotonic) -> None:
        self.config = config
        self.runner: Runner = runner if runner is not None else functools.partial(run_benchmark, config=config)
        self.clock = clock
        self._benchmarks: list[str] | None = None

    @property
    def benchmarks(self) -> list[str]:
        if self._benchmarks is None:
            self._benchmarks = find_common_benchmarks(self.config.root, self.config.suites, self.config.artifact)
        return self._benchmarks

    def cache_path(self, suite: str, benchmark: str) -> Path:
        return self.config.benchmark_dir(suite, benchmark) / self.config.cache_file

    def _accurate(self, records: list[MeasurementRecord]) -> bool:
        return is_accurate(
            records,
            min_iterations=self.config.min_kernel_iterations,
            max_uncertainty=self.config.max_kernel_uncertainty,
        )

    def measure_benchmark(self, suite: str, benchmark: str) -> BenchmarkResult:
        directory = self.config.benchmark_dir(suite, benchmark)
        cache_path = self.cache_path(suite, benchmark)

        if cache_path.is_file():
            records = read_dataset(cache_path)
            logger.info("Using cached %s/%s (%d records)", suite, benchmark, len(records))
            return BenchmarkResult(suite=suite, benchmark=benchmark, source="cache", iterations=0, records=records)

        t0 = self.clock()
        iteration = 1
        records = list(self.runner(directory, suite, benchmark))
        while (
            self.clock() - t0 < self.config.max_benchmark_seconds
            and iteration < self.config.max_benchmark_runs
            and not self._accurate(records)
        ):
            iteration += 1
            logger.debug("%s/%s: iteration %d", suite, benchmark, iteration)
            records.extend(self.runner(directory, suite, benchmark))

        logger.info("Measured %s/%s in %d iteration(s)", suite, benchmark, iteration)
        write_dataset(cache_path, records)
        return BenchmarkResult(suite=suite, benchmark=benchmark, source="fresh", iterations=iteration, records=records)

    def run(self) -> list[BenchmarkResult]:
        """Measure the whole corpus and write the merged dataset.

        Any runner failure propagates; the merged dataset is only written after
        every benchmark finished.
        """
        results: list[BenchmarkResult] = []
        for suite in self.config.suites:
            for benchmark in self.benchmarks:
                logger.info("Processing %s/%s", suite, benchmark)
                results.append(self.measure_benchmark(suite, benchmark))

        measurements = [r for res in results for r in res.records]
        write_dataset(self.config.output_path, measurements)
        logger.info("Wrote %d records to %s", len(measurements), self.config.output_path)
        return results
