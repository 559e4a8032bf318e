from __future__ import annotations

from collections.abc import Iterable, Mapping

import attrs

from .model import MeasurementRecord

AmbiguousKernelTable = Mapping[str, frozenset[str]]

# These benchmarks spend a workload-dependent amount of time per launch of the
# listed kernels, so their samples must not be pooled under one name.
AMBIGUOUS_KERNELS: dict[str, frozenset[str]] = {
    "bfs": frozenset({"Kernel", "Kernel2"}),
    "leukocyte": frozenset({"IMGVF_kernel"}),
    "lud": frozenset({"lud_perimeter", "lud_internal"}),
    "particlefilter": frozenset({"find_index_kernel"}),
    "nw": frozenset({"needle_cuda_shared_1", "needle_cuda_shared_2"}),
}


def freeze_table(table: Mapping[str, Iterable[str]]) -> dict[str, frozenset[str]]:
    return {str(benchmark): frozenset(names) for benchmark, names in table.items()}


def disambiguate(
    records: list[MeasurementRecord],
    benchmark: str,
    table: AmbiguousKernelTable = AMBIGUOUS_KERNELS,
) -> list[MeasurementRecord]:
    """Give each launch of an ambiguous kernel its own name, `<kernel>_<row>`.

    Rows are numbered from 1 in trace order, so the same launch gets the same
    name in every run of the benchmark. Records of other kernels (and of
    benchmarks absent from `table`) are returned as-is.
    """
    names = table.get(benchmark)
    if not names:
        return list(records)

    out: list[MeasurementRecord] = []
    for row, rec in enumerate(records, start=1):
        if rec.kernel in names:
            rec = attrs.evolve(rec, kernel=f"{rec.kernel}_{row}")
        out.append(rec)
    return out
