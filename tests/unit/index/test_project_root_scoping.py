from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path, PurePath

import pytest

from mtime_index import FileIndex, Fingerprint, IndexLocation
from mtime_index.logging import CollectingDiagnostics

STAMP = datetime(2021, 1, 1, tzinfo=UTC)


def _index(root: Path) -> FileIndex:
    location = IndexLocation(
        snapshot_path=root / ".mtime_index" / "snapshot",
        fingerprint=Fingerprint("v1"),
        project_root=root,
    )
    return FileIndex.load(location, CollectingDiagnostics())


def test_query_outside_project_returns_none(tmp_path: Path) -> None:
    root = tmp_path / "proj"
    root.mkdir()
    index = _index(root)
    index.set_last_modified_time(root / "a.txt", STAMP)

    assert index.get_last_modified_time(tmp_path / "a.txt") is None
    assert index.get_last_modified_time(tmp_path / "proj-sibling" / "a.txt") is None
    assert index.get_last_modified_time(Path("/")) is None
    assert index.get_last_modified_time(PurePath("a.txt")) is None


def test_query_does_not_mark_dirty(tmp_path: Path) -> None:
    index = _index(tmp_path)

    assert index.get_last_modified_time(tmp_path / "missing.txt") is None
    assert index.dirty is False


def test_query_accepts_pure_paths_under_root(tmp_path: Path) -> None:
    index = _index(tmp_path)
    index.set_last_modified_time(tmp_path / "pkg" / "mod.py", STAMP)

    assert index.get_last_modified_time(PurePath(str(tmp_path), "pkg", "mod.py")) == STAMP


def test_update_outside_project_is_rejected(tmp_path: Path) -> None:
    root = tmp_path / "proj"
    root.mkdir()
    index = _index(root)

    with pytest.raises(ValueError):
        index.set_last_modified_time(tmp_path / "elsewhere.txt", STAMP)

    assert index.dirty is False


def test_update_rejects_line_breaks_in_path(tmp_path: Path) -> None:
    index = _index(tmp_path)

    with pytest.raises(ValueError, match="cannot be stored"):
        index.set_last_modified_time(tmp_path / "bad\nname.txt", STAMP)
