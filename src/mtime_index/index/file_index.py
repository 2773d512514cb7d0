"""Persistent path-to-mtime index backed by a single snapshot file."""

from __future__ import annotations

import contextlib
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path, PurePath

from mtime_index.fingerprint import Fingerprint
from mtime_index.index.models import (
    IndexLocation,
    IndexWriteError,
    SnapshotFormatError,
    SnapshotRead,
)
from mtime_index.index.timestamps import format_timestamp, parse_timestamp
from mtime_index.logging import DiagnosticSink

SEPARATOR = " "


class FileIndex:
    """Tracks when each file under a project root was last processed.

    An instance lives for exactly one run: load it, query and update it per
    file, then call :meth:`write` once. Only :meth:`load` and :meth:`write`
    touch the filesystem.
    """

    def __init__(
        self,
        location: IndexLocation,
        entries: dict[PurePath, datetime] | None = None,
    ) -> None:
        self._snapshot_path = location.snapshot_path
        self._fingerprint = location.fingerprint
        self._project_root = location.project_root
        self._entries: dict[PurePath, datetime] = dict(entries or {})
        self._dirty = False

    @classmethod
    def load(cls, location: IndexLocation, diagnostics: DiagnosticSink) -> FileIndex:
        """Load the snapshot, falling back to an empty index on any read problem."""
        outcome = read_snapshot(location, diagnostics)
        if outcome.status == "missing":
            diagnostics.info("Index file does not exist. Fallback to an empty index")
        elif outcome.status == "fingerprint_mismatch":
            diagnostics.info("Fingerprint mismatch in the index file. Fallback to an empty index")
        elif outcome.status == "unreadable":
            diagnostics.warn(
                "Error reading the index file. Fallback to an empty index", outcome.error
            )
        return cls(location, outcome.entries)

    @property
    def snapshot_path(self) -> Path:
        return self._snapshot_path

    @property
    def fingerprint(self) -> Fingerprint:
        return self._fingerprint

    @property
    def project_root(self) -> Path:
        return self._project_root

    @property
    def dirty(self) -> bool:
        """True once any entry was set since load or the last write."""
        return self._dirty

    def entries(self) -> list[tuple[PurePath, datetime]]:
        """Return entries sorted by relative path."""
        return [(path, self._entries[path]) for path in sorted(self._entries)]

    def __len__(self) -> int:
        return len(self._entries)

    def get_last_modified_time(self, path: PurePath) -> datetime | None:
        """Return the recorded timestamp, or None for unknown or out-of-project paths."""
        candidate = PurePath(path)
        if not candidate.is_relative_to(self._project_root):
            return None
        return self._entries.get(PurePath(candidate.relative_to(self._project_root)))

    def set_last_modified_time(self, path: PurePath, timestamp: datetime) -> None:
        """Record a timestamp for a path that must be under the project root."""
        relative = PurePath(PurePath(path).relative_to(self._project_root))
        if any(char in str(relative) for char in "\r\n"):
            raise ValueError(f"Path cannot be stored in the index: {relative!r}")
        if timestamp.tzinfo is None:
            raise ValueError("Timestamp must be timezone-aware.")
        self._entries[relative] = timestamp.astimezone(UTC)
        self._dirty = True

    def write(self) -> bool:
        """Persist the snapshot if anything changed; return whether it was written."""
        if not self._dirty:
            return False

        try:
            self._snapshot_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise IndexWriteError(
                f"Unable to create parent directory for the index file: {self._snapshot_path}",
                self._snapshot_path,
            ) from error

        tmp = self._snapshot_path.with_name(self._snapshot_path.name + ".tmp")
        try:
            with tmp.open("w", encoding="utf-8", newline="\n") as handle:
                handle.write(self._fingerprint.to_line())
                handle.write("\n")
                for relative, timestamp in self.entries():
                    handle.write(f"{relative}{SEPARATOR}{format_timestamp(timestamp)}\n")
            tmp.replace(self._snapshot_path)
        except (OSError, UnicodeError) as error:
            with contextlib.suppress(OSError):
                tmp.unlink(missing_ok=True)
            raise IndexWriteError("Unable to write the index", self._snapshot_path) from error

        self._dirty = False
        return True


def read_snapshot(location: IndexLocation, diagnostics: DiagnosticSink) -> SnapshotRead:
    """Read a snapshot file into an outcome without raising on bad state."""
    path = location.snapshot_path
    if not path.exists():
        return SnapshotRead(status="missing")

    try:
        with path.open("r", encoding="utf-8") as handle:
            first_line = handle.readline()
            if not first_line:
                raise SnapshotFormatError("Incorrect index file. Fingerprint line is missing")
            if Fingerprint.from_line(first_line) != location.fingerprint:
                return SnapshotRead(status="fingerprint_mismatch")
            entries = parse_entries(handle, location.project_root, diagnostics)
    except (OSError, UnicodeDecodeError, SnapshotFormatError) as error:
        return SnapshotRead(status="unreadable", error=error)
    return SnapshotRead(status="loaded", entries=entries)


def parse_entries(
    lines: Iterable[str],
    project_root: Path,
    diagnostics: DiagnosticSink,
) -> dict[PurePath, datetime]:
    """Parse ``<path> <timestamp>`` lines, pruning files that no longer exist."""
    entries: dict[PurePath, datetime] = {}
    for raw_line in lines:
        line = raw_line.removesuffix("\n")
        # paths may contain spaces, timestamps never do
        separator_index = line.rfind(SEPARATOR)
        if separator_index == -1:
            raise SnapshotFormatError(
                f"Incorrect index file. No separator found in '{line}'", line
            )

        relative = PurePath(line[:separator_index])
        if not (project_root / relative).exists():
            diagnostics.info(f"File stored in the index does not exist: {relative}")
            continue
        try:
            timestamp = parse_timestamp(line[separator_index + len(SEPARATOR) :])
        except ValueError as error:
            raise SnapshotFormatError(
                f"Incorrect index file. Unable to parse last modified time from '{line}'", line
            ) from error
        entries[relative] = timestamp
    return entries
