from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone
import os
from pathlib import Path

import pytest

from mtime_index import FileIndex, Fingerprint, IndexLocation, IndexWriteError
from mtime_index.logging import CollectingDiagnostics

STAMP = datetime(2021, 1, 1, 0, 0, 0, tzinfo=UTC)


def _location(root: Path, snapshot: Path | None = None) -> IndexLocation:
    return IndexLocation(
        snapshot_path=snapshot or root / ".mtime_index" / "snapshot",
        fingerprint=Fingerprint("v1"),
        project_root=root,
    )


def _seed(root: Path) -> Path:
    source = root / "src" / "a.py"
    source.parent.mkdir(parents=True, exist_ok=True)
    source.write_text("print('a')\n", encoding="utf-8")
    index = FileIndex.load(_location(root), CollectingDiagnostics())
    index.set_last_modified_time(source, STAMP)
    index.write()
    return root / ".mtime_index" / "snapshot"


def test_unmodified_index_never_rewrites_snapshot(tmp_path: Path) -> None:
    snapshot = _seed(tmp_path)
    before_bytes = snapshot.read_bytes()
    before_mtime = snapshot.stat().st_mtime_ns

    index = FileIndex.load(_location(tmp_path), CollectingDiagnostics())
    index.get_last_modified_time(tmp_path / "src" / "a.py")

    assert index.write() is False
    assert snapshot.read_bytes() == before_bytes
    assert snapshot.stat().st_mtime_ns == before_mtime


def test_empty_index_without_updates_creates_nothing(tmp_path: Path) -> None:
    index = FileIndex.load(_location(tmp_path), CollectingDiagnostics())

    assert index.write() is False
    assert not (tmp_path / ".mtime_index").exists()


def test_update_then_write_adds_mapping_and_keeps_fingerprint(tmp_path: Path) -> None:
    snapshot = _seed(tmp_path)
    added = tmp_path / "src" / "b.py"
    added.write_text("print('b')\n", encoding="utf-8")

    index = FileIndex.load(_location(tmp_path), CollectingDiagnostics())
    index.set_last_modified_time(added, STAMP + timedelta(hours=1))
    assert index.dirty is True
    assert index.write() is True

    lines = snapshot.read_text(encoding="utf-8").splitlines()
    assert lines == [
        "v1",
        "src/a.py 2021-01-01T00:00:00Z",
        "src/b.py 2021-01-01T01:00:00Z",
    ]


def test_setting_identical_timestamp_still_marks_dirty(tmp_path: Path) -> None:
    _seed(tmp_path)

    index = FileIndex.load(_location(tmp_path), CollectingDiagnostics())
    index.set_last_modified_time(tmp_path / "src" / "a.py", STAMP)

    assert index.dirty is True
    assert index.write() is True


def test_second_write_in_same_run_is_a_no_op(tmp_path: Path) -> None:
    snapshot = _seed(tmp_path)
    index = FileIndex.load(_location(tmp_path), CollectingDiagnostics())
    index.set_last_modified_time(tmp_path / "src" / "a.py", STAMP + timedelta(days=1))

    assert index.write() is True
    assert index.dirty is False
    mtime = snapshot.stat().st_mtime_ns
    assert index.write() is False
    assert snapshot.stat().st_mtime_ns == mtime


def test_update_overwrites_and_normalizes_to_utc(tmp_path: Path) -> None:
    source = tmp_path / "a.txt"
    source.write_text("a", encoding="utf-8")
    index = FileIndex.load(_location(tmp_path), CollectingDiagnostics())

    plus_two = timezone(timedelta(hours=2))
    index.set_last_modified_time(source, STAMP)
    index.set_last_modified_time(source, datetime(2021, 1, 1, 3, 0, tzinfo=plus_two))

    stored = index.get_last_modified_time(source)
    assert stored == datetime(2021, 1, 1, 1, 0, tzinfo=UTC)
    assert stored is not None and stored.tzinfo is UTC
    assert len(index) == 1


def test_naive_timestamp_is_rejected(tmp_path: Path) -> None:
    index = FileIndex.load(_location(tmp_path), CollectingDiagnostics())

    with pytest.raises(ValueError, match="timezone-aware"):
        index.set_last_modified_time(tmp_path / "a.txt", datetime(2021, 1, 1))

    assert index.dirty is False


def test_parent_directory_failure_is_raised(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    snapshot = blocker / "nested" / "snapshot"
    index = FileIndex.load(_location(tmp_path, snapshot), CollectingDiagnostics())
    index.set_last_modified_time(tmp_path / "a.txt", STAMP)

    with pytest.raises(IndexWriteError) as error:
        index.write()

    assert error.value.reason.startswith("Unable to create parent directory for the index file")
    assert error.value.path == snapshot
    assert isinstance(error.value.__cause__, OSError)
    assert index.dirty is True


def test_failed_replace_keeps_previous_snapshot(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    snapshot = _seed(tmp_path)
    previous = snapshot.read_bytes()
    index = FileIndex.load(_location(tmp_path), CollectingDiagnostics())
    index.set_last_modified_time(tmp_path / "src" / "a.py", STAMP + timedelta(days=3))

    def failing_replace(self: Path, target: Path) -> Path:
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(Path, "replace", failing_replace)

    with pytest.raises(IndexWriteError) as error:
        index.write()

    assert error.value.reason == "Unable to write the index"
    assert snapshot.read_bytes() == previous
    assert not snapshot.with_name("snapshot.tmp").exists()


def test_snapshot_path_occupied_by_directory_raises(tmp_path: Path) -> None:
    snapshot = tmp_path / "occupied"
    snapshot.mkdir()
    index = FileIndex.load(_location(tmp_path, snapshot), CollectingDiagnostics())
    index.set_last_modified_time(tmp_path / "a.txt", STAMP)

    with pytest.raises(IndexWriteError, match="Unable to write the index"):
        index.write()

    assert snapshot.is_dir()
    assert not (tmp_path / "occupied.tmp").exists()


def test_unencodable_path_raises_write_error_and_removes_temp(tmp_path: Path) -> None:
    snapshot = tmp_path / ".mtime_index" / "snapshot"
    index = FileIndex.load(_location(tmp_path), CollectingDiagnostics())
    index.set_last_modified_time(tmp_path / os.fsdecode(b"bad\xff.py"), STAMP)

    with pytest.raises(IndexWriteError, match="Unable to write the index"):
        index.write()

    assert not snapshot.exists()
    assert not snapshot.with_name("snapshot.tmp").exists()
    assert index.dirty is True
