"""Per-kernel GPU timing measurement across benchmark suites.

This package repeatedly profiles each benchmark's `profile` executable with
`nvprof`, normalizes the per-invocation GPU trace into
`(suite, benchmark, kernel, time)` records, and keeps sampling until the
per-kernel relative uncertainty is low enough or a run/time budget is spent.
Results are cached per benchmark and merged into a single dataset.
"""
