from __future__ import annotations

from pathlib import Path


class ProfilerRunError(RuntimeError):
    """The profiler failed or did not produce exactly one usable trace."""

    def __init__(self, message: str, *, output: str = "", directory: Path | None = None) -> None:
        super().__init__(message)
        self.output = output
        self.directory = directory


class TraceFormatError(ValueError):
    """A profiler trace file does not have the expected CSV structure."""

    def __init__(self, message: str, *, path: Path) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path
