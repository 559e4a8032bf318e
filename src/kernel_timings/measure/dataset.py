from __future__ import annotations

import csv
from collections.abc import Iterable
from pathlib import Path

from .model import DATASET_COLUMNS, MeasurementRecord


def write_dataset(path: Path, records: Iterable[MeasurementRecord]) -> None:
    """Write records as CSV with columns `suite,benchmark,kernel,time`.

    The file is written to a sibling temp path first so an interrupted run never
    leaves a truncated cache behind.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.tmp")
    with tmp.open("w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=list(DATASET_COLUMNS))
        writer.writeheader()
        for r in records:
            writer.writerow(r.to_row())
    tmp.replace(path)


def read_dataset(path: Path) -> list[MeasurementRecord]:
    with path.open(newline="") as f:
        reader = csv.DictReader(f)
        missing = [c for c in DATASET_COLUMNS if c not in (reader.fieldnames or [])]
        if missing:
            raise ValueError(f"{path}: missing column(s) {missing}")
        return [
            MeasurementRecord(suite=row["suite"], benchmark=row["benchmark"], kernel=row["kernel"], duration=float(row["time"]))
            for row in reader
        ]
