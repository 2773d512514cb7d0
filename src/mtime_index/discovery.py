"""Deterministic discovery of candidate files under a project root."""

from __future__ import annotations

import fnmatch
import os
from collections.abc import Iterable
from pathlib import Path

from mtime_index.config import ScanConfig


def discover_files(
    project_root: Path,
    config: ScanConfig,
    skip: Iterable[Path] = (),
) -> list[Path]:
    """Return absolute paths of matching files, sorted by relative path."""
    root = project_root.resolve()
    skipped = {path.resolve() for path in skip}
    include_extensions = {extension.lower() for extension in config.include_extensions}
    excluded_dir_names = _excluded_dir_names(config.exclude_globs)

    found: list[tuple[str, Path]] = []
    stack: list[Path] = [root]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as entries:
                ordered_entries = sorted(entries, key=lambda item: item.name)
        except OSError:
            continue
        for entry in reversed(ordered_entries):
            full_path = Path(entry.path)
            if full_path in skipped:
                continue
            relative = full_path.relative_to(root).as_posix()
            if entry.is_dir(follow_symlinks=False):
                if entry.name in excluded_dir_names and should_exclude(
                    f"{relative}/", config.exclude_globs
                ):
                    continue
                stack.append(full_path)
                continue
            if not entry.is_file(follow_symlinks=False):
                continue
            if should_exclude(relative, config.exclude_globs):
                continue
            if not has_allowed_extension(relative, include_extensions):
                continue
            found.append((relative, full_path))

    found.sort(key=lambda item: item[0])
    return [full_path for _, full_path in found]


def should_exclude(relative_path: str, exclude_globs: tuple[str, ...]) -> bool:
    """Return True when a path matches configured ignore globs."""
    anchored = f"/{relative_path}"
    return any(
        fnmatch.fnmatch(relative_path, pattern) or fnmatch.fnmatch(anchored, pattern)
        for pattern in exclude_globs
    )


def has_allowed_extension(relative_path: str, include_extensions: set[str]) -> bool:
    """Return True when file extension is included."""
    return Path(relative_path).suffix.lower() in include_extensions


def _excluded_dir_names(exclude_globs: tuple[str, ...]) -> set[str]:
    """Extract directory-name prunes from **/name/** glob patterns."""
    output: set[str] = set()
    for pattern in exclude_globs:
        if not pattern.startswith("**/") or not pattern.endswith("/**"):
            continue
        name = pattern[3:-3].strip("/")
        if not name:
            continue
        if any(char in name for char in "*?[]{}"):
            continue
        output.add(name)
    return output
