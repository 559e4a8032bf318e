from __future__ import annotations

import math
import statistics
from collections.abc import Iterable

from .model import AccuracySummary, MeasurementRecord

GroupKey = tuple[str, str, str]


def group_durations(records: Iterable[MeasurementRecord]) -> dict[GroupKey, list[float]]:
    groups: dict[GroupKey, list[float]] = {}
    for r in records:
        groups.setdefault((r.suite, r.benchmark, r.kernel), []).append(r.duration)
    return groups


def relative_uncertainty(abs_uncertainty: float, best: float) -> float:
    if abs_uncertainty == 0:
        return 0.0
    if best == 0:
        return math.inf
    return abs_uncertainty / abs(best)


def summarize(records: Iterable[MeasurementRecord]) -> list[AccuracySummary]:
    """Per-kernel statistics across all runs, in first-seen order.

    `best` is the minimum duration (least disturbed by noise); the absolute
    uncertainty is the sample standard deviation, 0 for a single sample.
    """
    out: list[AccuracySummary] = []
    for (suite, benchmark, kernel), durations in group_durations(records).items():
        best = min(durations)
        abs_u = statistics.stdev(durations) if len(durations) > 1 else 0.0
        out.append(
            AccuracySummary(
                suite=suite,
                benchmark=benchmark,
                kernel=kernel,
                iterations=len(durations),
                best=best,
                abs_uncertainty=abs_u,
                rel_uncertainty=relative_uncertainty(abs_u, best),
            )
        )
    return out


def summary_is_accurate(s: AccuracySummary, *, min_iterations: int, max_uncertainty: float) -> bool:
    return s.iterations >= min_iterations and s.rel_uncertainty < max_uncertainty


def is_accurate(records: Iterable[MeasurementRecord], *, min_iterations: int, max_uncertainty: float) -> bool:
    """True when every kernel has enough samples and a low enough spread."""
    summaries = summarize(records)
    if not summaries:
        return False
    return all(summary_is_accurate(s, min_iterations=min_iterations, max_uncertainty=max_uncertainty) for s in summaries)
