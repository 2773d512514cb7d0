"""Command-line host that drives one incremental run over a project."""

from __future__ import annotations

import argparse
import json
import subprocess
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

from mtime_index.config import CliOverrides, RunConfig, load_effective_config
from mtime_index.discovery import discover_files
from mtime_index.index import FileIndex, IndexWriteError, create_checker, format_timestamp
from mtime_index.logging import JsonlDiagnosticLog

EXIT_OK = 0
EXIT_PROCESSING_FAILED = 1
EXIT_FATAL = 2


def build_arg_parser() -> argparse.ArgumentParser:
    """Build argument parser for run configuration and subcommands."""
    parser = argparse.ArgumentParser(prog="mtime-index")
    parser.add_argument("--project-root", required=False, default=".")
    parser.add_argument("--data-dir", required=False, default=None)
    parser.add_argument("--snapshot", required=False, default=None)
    parser.add_argument("--fingerprint", required=False, default=None)
    parser.add_argument("--no-index", action="store_true", default=False)
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("stale", help="List files that changed since they were processed.")
    mark = subparsers.add_parser("mark", help="Record files as processed.")
    mark.add_argument("paths", nargs="+")
    run = subparsers.add_parser("run", help="Run a command on every stale file.")
    run.add_argument("argv", nargs=argparse.REMAINDER)
    subparsers.add_parser("show", help="Print the stored index entries.")
    diagnostics = subparsers.add_parser("diagnostics", help="Print recent diagnostics.")
    diagnostics.add_argument("--limit", type=int, default=50)
    diagnostics.add_argument("--since", default=None)
    return parser


def main(argv: list[str] | None = None, out_stream: TextIO | None = None) -> int:
    """Entrypoint for the mtime-index command."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    out = out_stream or sys.stdout

    command_argv: list[str] = []
    if args.command == "run":
        command_argv = list(args.argv)
        if command_argv and command_argv[0] == "--":
            command_argv = command_argv[1:]
        if not command_argv:
            parser.error("run requires a command, e.g. 'mtime-index run -- black'")

    overrides = CliOverrides(
        data_dir=Path(args.data_dir).resolve() if args.data_dir is not None else None,
        snapshot_path=Path(args.snapshot) if args.snapshot is not None else None,
        fingerprint=args.fingerprint,
        enabled=False if args.no_index else None,
    )
    try:
        config = load_effective_config(Path(args.project_root), overrides)
    except ValueError as error:
        return _emit(out, error_response("CONFIG_INVALID", str(error)), EXIT_FATAL)

    try:
        if args.command == "stale":
            return _emit(out, success_response(stale_files(config)), EXIT_OK)
        if args.command == "mark":
            return _emit(out, *mark_files(config, [Path(item) for item in args.paths]))
        if args.command == "run":
            return _emit(out, *run_command(config, command_argv))
        if args.command == "show":
            return _emit(out, success_response(show_index(config)), EXIT_OK)
        log = JsonlDiagnosticLog(config.diagnostics_path)
        events = log.read(since=args.since, limit=args.limit)
        return _emit(out, success_response({"events": events}), EXIT_OK)
    except IndexWriteError as error:
        cause = error.__cause__
        message = f"{error.reason}: {cause}" if cause is not None else error.reason
        return _emit(out, error_response("INDEX_WRITE_FAILED", message), EXIT_FATAL)


def stale_files(config: RunConfig) -> dict[str, object]:
    """Report discovered files that are not up to date."""
    diagnostics = JsonlDiagnosticLog(config.diagnostics_path)
    candidates = discover_files(
        config.project_root, config.scan, skip=_internal_paths(config)
    )
    with create_checker(config, diagnostics) as checker:
        stale = [path for path in candidates if not checker.is_up_to_date(path)]
    return {
        "checked": len(candidates),
        "stale": [_relative(config, path) for path in stale],
    }


def mark_files(config: RunConfig, paths: Sequence[Path]) -> tuple[dict[str, object], int]:
    """Record the given files as processed and persist the index."""
    resolved: list[Path] = []
    for raw in paths:
        path = raw.resolve()
        if not path.is_relative_to(config.project_root):
            return (
                error_response("PATH_OUTSIDE_PROJECT", f"Path is outside the project: {raw}"),
                EXIT_PROCESSING_FAILED,
            )
        if not path.is_file():
            return (
                error_response("PATH_NOT_FOUND", f"File does not exist: {raw}"),
                EXIT_PROCESSING_FAILED,
            )
        resolved.append(path)

    diagnostics = JsonlDiagnosticLog(config.diagnostics_path)
    with create_checker(config, diagnostics) as checker:
        for path in resolved:
            checker.set_up_to_date(path)
    return success_response({"marked": [_relative(config, path) for path in resolved]}), EXIT_OK


def run_command(config: RunConfig, command: Sequence[str]) -> tuple[dict[str, object], int]:
    """Run ``command <file>`` for each stale file and mark the successes."""
    diagnostics = JsonlDiagnosticLog(config.diagnostics_path)
    candidates = discover_files(
        config.project_root, config.scan, skip=_internal_paths(config)
    )
    processed: list[str] = []
    failed: list[dict[str, object]] = []
    skipped = 0
    with create_checker(config, diagnostics) as checker:
        for path in candidates:
            if checker.is_up_to_date(path):
                skipped += 1
                continue
            relative = _relative(config, path)
            try:
                completed = subprocess.run(
                    [*command, str(path)],
                    cwd=config.project_root,
                    capture_output=True,
                    text=True,
                    check=False,
                )
            except OSError as error:
                diagnostics.warn(f"Unable to run command for {relative}", error)
                failed.append({"path": relative, "returncode": None})
                continue
            if completed.returncode != 0:
                diagnostics.info(
                    f"Command failed for {relative} with exit code {completed.returncode}: "
                    f"{_last_line(completed.stderr)}"
                )
                failed.append({"path": relative, "returncode": completed.returncode})
                continue
            checker.set_up_to_date(path)
            processed.append(relative)

    result: dict[str, object] = {
        "checked": len(candidates),
        "skipped": skipped,
        "processed": processed,
        "failed": failed,
    }
    if failed:
        return {"ok": False, "result": result}, EXIT_PROCESSING_FAILED
    return success_response(result), EXIT_OK


def show_index(config: RunConfig) -> dict[str, object]:
    """Load the index and report its entries with the effective config."""
    diagnostics = JsonlDiagnosticLog(config.diagnostics_path)
    index = FileIndex.load(config.index_location(), diagnostics)
    return {
        "config": config.to_public_dict(),
        "entries": [
            {"path": str(path), "last_modified": format_timestamp(timestamp)}
            for path, timestamp in index.entries()
        ],
    }


def success_response(result: dict[str, object]) -> dict[str, object]:
    return {"ok": True, "result": result}


def error_response(code: str, message: str) -> dict[str, object]:
    return {"ok": False, "error": {"code": code, "message": message}}


def _emit(out: TextIO, payload: dict[str, object], exit_code: int) -> int:
    out.write(f"{json.dumps(payload, sort_keys=True)}\n")
    out.flush()
    return exit_code


def _relative(config: RunConfig, path: Path) -> str:
    return path.relative_to(config.project_root).as_posix()


def _internal_paths(config: RunConfig) -> tuple[Path, ...]:
    return (config.data_dir, config.snapshot_path)


def _last_line(text: str) -> str:
    lines = [line for line in text.splitlines() if line.strip()]
    return lines[-1].strip() if lines else "no output"


if __name__ == "__main__":
    raise SystemExit(main())
