"""Up-to-date decisions layered over the persistent index."""

from __future__ import annotations

from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, Protocol

from mtime_index.index.file_index import FileIndex
from mtime_index.index.timestamps import file_last_modified
from mtime_index.logging import DiagnosticSink

if TYPE_CHECKING:
    from mtime_index.config import RunConfig


class UpToDateChecker(Protocol):
    """Decides which files can be skipped and records processed ones."""

    def is_up_to_date(self, path: Path) -> bool: ...

    def set_up_to_date(self, path: Path) -> None: ...

    def close(self) -> None: ...

    def __enter__(self) -> UpToDateChecker: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None: ...


class IndexBasedChecker:
    """Compares current file mtimes against the ones recorded in the index."""

    def __init__(self, index: FileIndex) -> None:
        self._index = index

    @property
    def index(self) -> FileIndex:
        return self._index

    def is_up_to_date(self, path: Path) -> bool:
        recorded = self._index.get_last_modified_time(path)
        if recorded is None:
            return False
        try:
            current = file_last_modified(path)
        except OSError:
            return False
        return recorded == current

    def set_up_to_date(self, path: Path) -> None:
        self._index.set_last_modified_time(path, file_last_modified(path))

    def close(self) -> None:
        """Persist the index; write failures propagate."""
        self._index.write()

    def __enter__(self) -> IndexBasedChecker:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class NoopChecker:
    """Checker used when up-to-date checking is off: every file is stale."""

    def is_up_to_date(self, path: Path) -> bool:
        return False

    def set_up_to_date(self, path: Path) -> None:
        return None

    def close(self) -> None:
        return None

    def __enter__(self) -> NoopChecker:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def create_checker(config: RunConfig, diagnostics: DiagnosticSink) -> UpToDateChecker:
    """Build the checker selected by configuration."""
    if not config.index.enabled:
        diagnostics.info("Up-to-date checking is disabled")
        return NoopChecker()
    return IndexBasedChecker(FileIndex.load(config.index_location(), diagnostics))
