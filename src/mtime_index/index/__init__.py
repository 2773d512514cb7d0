"""Persistent incremental index and up-to-date checking."""

from .checker import IndexBasedChecker, NoopChecker, UpToDateChecker, create_checker
from .file_index import SEPARATOR, FileIndex, parse_entries, read_snapshot
from .models import IndexLocation, IndexWriteError, SnapshotFormatError, SnapshotRead
from .timestamps import file_last_modified, format_timestamp, parse_timestamp

__all__ = [
    "FileIndex",
    "IndexBasedChecker",
    "IndexLocation",
    "IndexWriteError",
    "NoopChecker",
    "SEPARATOR",
    "SnapshotFormatError",
    "SnapshotRead",
    "UpToDateChecker",
    "create_checker",
    "file_last_modified",
    "format_timestamp",
    "parse_entries",
    "parse_timestamp",
    "read_snapshot",
]
