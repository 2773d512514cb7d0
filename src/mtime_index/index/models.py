"""Typed models for index state and read outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path, PurePath
from typing import Literal

from mtime_index.fingerprint import Fingerprint

ReadStatus = Literal["loaded", "missing", "fingerprint_mismatch", "unreadable"]


@dataclass(slots=True, frozen=True)
class IndexLocation:
    """Where an index lives and which configuration it must match."""

    snapshot_path: Path
    fingerprint: Fingerprint
    project_root: Path


@dataclass(slots=True, frozen=True)
class SnapshotRead:
    """Outcome of reading a snapshot file, before it becomes an index."""

    status: ReadStatus
    entries: dict[PurePath, datetime] = field(default_factory=dict)
    error: BaseException | None = None


class SnapshotFormatError(ValueError):
    """Raised when a snapshot line cannot be parsed."""

    def __init__(self, reason: str, line: str | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.line = line


class IndexWriteError(Exception):
    """Raised when the snapshot file cannot be persisted."""

    def __init__(self, reason: str, path: Path) -> None:
        super().__init__(reason)
        self.reason = reason
        self.path = path
